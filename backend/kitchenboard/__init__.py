"""Kitchen board - live order board, new-order alerts and push registration."""

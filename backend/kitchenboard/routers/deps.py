"""Shared router dependencies."""
from fastapi import Request

from ..board import KitchenBoard


def get_board(request: Request) -> KitchenBoard:
    """The board instance owned by the running application."""
    return request.app.state.board

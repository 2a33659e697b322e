from .commands import Command, Get, Set
from .parser import GET_HEADER, SET_HEADER, parse_line, parse_request

__all__ = ["Command", "Get", "Set", "GET_HEADER", "SET_HEADER", "parse_line", "parse_request"]

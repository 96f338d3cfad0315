"""Core types"""

from typing import NewType, Union

Address = NewType("Address", str)
"""A address type for explicitly identifying a contract address in usage"""


class HexInt:
    """
    A non-negative integer read from, or written as, a hexadecimal string. Block
    heights from RPC nodes and token IDs encoded for ERC-1155 URIs both pass through
    this type.
    """

    def __init__(self, value: Union[str, int]) -> None:
        if isinstance(value, str):
            self.__int_value = int(value, 16)
        elif isinstance(value, int) and not isinstance(value, bool):
            self.__int_value = value
        else:
            raise TypeError("parameter value must be str or int")
        if self.__int_value < 0:
            raise ValueError("parameter value must not be negative")

    def __eq__(self, other) -> bool:
        if isinstance(other, HexInt):
            return self.int_value == other.int_value
        if isinstance(other, int):
            return self.int_value == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.int_value)

    @property
    def int_value(self) -> int:
        return self.__int_value

    def padded_hex(self, length: int, prefix: bool = True) -> str:
        """
        Get a zero-padded, lower case hexadecimal string of the object. for example::

            HexInt(1).padded_hex(4)

        will return the hexadecimal string `0x0001`. Passing `prefix=False` omits the
        leading `0x`, which is the form ERC-1155 expects for its `{id}` substitution.
        """
        digits = format(self.int_value, "x").zfill(length)
        return f"0x{digits}" if prefix else digits

class VmError(Exception):
    """
    Base class for every error the interpreter raises because of guest program content.
    """


class UnknownOpcode(VmError):
    def __init__(self, word: int):
        super().__init__(f"Unknown opcode {word:04x}.")
        self.word = word


class StackOverflow(VmError):
    def __init__(self, capacity: int):
        super().__init__(f"Stack overflow, the stack already holds {capacity} return addresses.")
        self.capacity = capacity


class StackUnderflow(VmError):
    def __init__(self):
        super().__init__("Stack underflow, tried to return from a subroutine when the stack is empty.")


class MemoryOutOfBounds(VmError):
    def __init__(self, address: int):
        super().__init__(f"Memory access out of bounds at address {hex(address)}.")
        self.address = address


class RomTooLarge(VmError):
    def __init__(self, size: int, capacity: int):
        super().__init__(f"ROM of {size} bytes does not fit in the {capacity} bytes available for programs.")
        self.size = size
        self.capacity = capacity

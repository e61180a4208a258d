import logging

import numpy as np

from typing import List, Optional

from chipvm.config import Config, MEMORY_SIZE
from chipvm.errors import MemoryOutOfBounds, RomTooLarge, StackOverflow, StackUnderflow

logger = logging.getLogger(__name__)

# Constants
REGISTER_COUNT = 16
FLAG_REGISTER = 15
KEY_COUNT = 16
STACK_CAPACITY = 16
SCREEN_WIDTH = 64
SCREEN_HEIGHT = 32
FONT_ADDRESS = 0
FONT_SPRITE_HEIGHT = 5
INTERPRETER_END_ADDRESS = 80

DIGIT_SPRITES = bytes.fromhex(
    "f0909090f0"  # 0
    "2060202070"  # 1
    "f010f080f0"  # 2
    "f010f010f0"  # 3
    "9090f01010"  # 4
    "f080f010f0"  # 5
    "f080f090f0"  # 6
    "f010204040"  # 7
    "f090f090f0"  # 8
    "f090f010f0"  # 9
    "f090f09090"  # A
    "e090e090e0"  # B
    "f0808080f0"  # C
    "e0909090e0"  # D
    "f080f080f0"  # E
    "f080f08080"  # F
)


class WaitForKey:
    """
    Tracks whether execution is suspended on a key-wait instruction, and which register receives the key.
    """
    def __init__(self):
        self.is_waiting = False
        self.storing_register = 0


class State:
    """
    Everything the interpreter knows about a running program.  Plain data plus bounds-checked accessors; all behaviour lives in the executor.
    """
    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()
        self.ram = bytearray(MEMORY_SIZE)
        self.registers = bytearray(REGISTER_COUNT)
        self.register_i = 0
        self.program_counter = self.config.load_offset
        self.stack: List[int] = []
        self.delay = 0
        self.sound = 0
        self.pixels = np.zeros((SCREEN_WIDTH, SCREEN_HEIGHT), np.ubyte)
        self.keys: List[bool] = [False] * KEY_COUNT
        self.previous_keys: List[bool] = [False] * KEY_COUNT
        self.waiting_for_key = WaitForKey()

        self.load_digit_sprites()

    def reset(self) -> None:
        """
        Restore the state to how it was right after construction.
        """
        self.ram = bytearray(MEMORY_SIZE)
        self.registers = bytearray(REGISTER_COUNT)
        self.register_i = 0
        self.program_counter = self.config.load_offset
        self.stack = []
        self.delay = 0
        self.sound = 0
        self.pixels.fill(0)
        self.keys = [False] * KEY_COUNT
        self.previous_keys = [False] * KEY_COUNT
        self.waiting_for_key = WaitForKey()

        self.load_digit_sprites()

    def load_digit_sprites(self) -> None:
        """
        Load the sprites for the hexadecimal digits 0-f into the interpreter area of memory.
        """
        self.ram[FONT_ADDRESS:FONT_ADDRESS + len(DIGIT_SPRITES)] = DIGIT_SPRITES

    def load_rom(self, rom: bytes) -> None:
        """
        Copy a program into memory at the load offset.
        :param rom: The raw program bytes.
        """
        capacity = self.config.program_capacity
        if len(rom) > capacity:
            raise RomTooLarge(len(rom), capacity)

        offset = self.config.load_offset
        self.ram[offset:offset + len(rom)] = rom
        logger.debug(f"Loaded {len(rom)} bytes at {hex(offset)}.")

    # region Memory
    @staticmethod
    def check_address(address: int) -> None:
        """
        Raise if the address does not fall within memory.
        :param address: The address to check.
        """
        if not 0 <= address < MEMORY_SIZE:
            raise MemoryOutOfBounds(address)

    def read_byte(self, address: int) -> int:
        self.check_address(address)
        return self.ram[address]

    def write_byte(self, address: int, value: int) -> None:
        self.check_address(address)
        self.ram[address] = value

    def read_word(self, address: int) -> int:
        """
        Read the big-endian 16-bit word starting at the given address.
        :param address: The address of the high byte.
        :return: The word.
        """
        self.check_address(address)
        self.check_address(address + 1)
        return (self.ram[address] << 8) | self.ram[address + 1]

    def read_block(self, address: int, length: int) -> bytes:
        """
        Read a run of bytes, failing before anything is read if any of it falls outside memory.
        :param address: The first address to read.
        :param length: How many bytes to read.
        :return: The bytes read.
        """
        if length <= 0:
            return b""
        self.check_address(address)
        self.check_address(address + length - 1)
        return bytes(self.ram[address:address + length])

    def write_block(self, address: int, data: bytes) -> None:
        """
        Write a run of bytes, failing before anything is written if any of it falls outside memory.
        :param address: The first address to write.
        :param data: The bytes to write.
        """
        if not data:
            return
        self.check_address(address)
        self.check_address(address + len(data) - 1)
        self.ram[address:address + len(data)] = data
    # endregion

    # region Stack
    def push(self, address: int) -> None:
        if len(self.stack) >= STACK_CAPACITY:
            raise StackOverflow(STACK_CAPACITY)
        self.stack.append(address)

    def pop(self) -> int:
        if not self.stack:
            raise StackUnderflow()
        return self.stack.pop()
    # endregion

    @property
    def framebuffer(self) -> np.ndarray:
        """
        A read-only view of the pixels, indexed [x, y], 1 for on and 0 for off.
        """
        view = self.pixels.view()
        view.flags.writeable = False
        return view

    @property
    def sound_active(self) -> bool:
        return self.sound > 0

    def newly_pressed_keys(self) -> List[int]:
        """
        The keys which are pressed now but were not pressed during the previous step, lowest first.
        """
        return [key for key in range(KEY_COUNT) if self.keys[key] and not self.previous_keys[key]]

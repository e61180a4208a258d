from dataclasses import dataclass
from enum import Enum

MEMORY_SIZE = 4096
GAME_START_ADDRESS = 512
TIMER_HZ = 60
DEFAULT_CPU_HZ = 500


class ShiftQuirk(Enum):
    """
    Which register the shift opcodes (8xy6 / 8xyE) read from.
    """
    LEGACY = "legacy"  # Vx = Vy shifted, as on the COSMAC VIP
    MODERN = "modern"  # Vx shifted in place, Vy ignored


class SpriteWrapPolicy(Enum):
    """
    What happens to sprite pixels drawn past the right or bottom edge of the screen.
    """
    CLIP = "clip"
    WRAP = "wrap"


@dataclass(frozen=True)
class Config:
    """
    The options which control how the interpreter behaves.  Each quirk flag selects one of the historical behaviours for an opcode whose meaning differs between CHIP-8 interpreters.
    """
    load_offset: int = GAME_START_ADDRESS
    shift_quirk: ShiftQuirk = ShiftQuirk.MODERN
    load_store_increments_index: bool = False
    sprite_wrap_policy: SpriteWrapPolicy = SpriteWrapPolicy.CLIP
    logic_resets_flag: bool = False
    index_add_sets_flag: bool = False
    cpu_hz: int = DEFAULT_CPU_HZ

    def __post_init__(self):
        if not 0 <= self.load_offset < MEMORY_SIZE:
            raise ValueError(f"The load offset must be within memory (0x000 - 0xfff), got {hex(self.load_offset)}.")
        if self.cpu_hz <= 0:
            raise ValueError(f"The CPU rate must be positive, got {self.cpu_hz}.")
        # Accept the plain option strings as well, which is what the command line hands over.
        object.__setattr__(self, "shift_quirk", ShiftQuirk(self.shift_quirk))
        object.__setattr__(self, "sprite_wrap_policy", SpriteWrapPolicy(self.sprite_wrap_policy))

    @property
    def program_capacity(self) -> int:
        """
        The number of bytes available for a program loaded at the load offset.
        """
        return MEMORY_SIZE - self.load_offset

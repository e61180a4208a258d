from chipvm.clock import Clock
from chipvm.config import Config, ShiftQuirk, SpriteWrapPolicy
from chipvm.decoder import Instruction, Operation, decode, disassemble, encode
from chipvm.errors import MemoryOutOfBounds, RomTooLarge, StackOverflow, StackUnderflow, UnknownOpcode, VmError
from chipvm.executor import Executor
from chipvm.machine import Machine, Status
from chipvm.state import State

__all__ = [
    "Clock",
    "Config",
    "Executor",
    "Instruction",
    "Machine",
    "MemoryOutOfBounds",
    "Operation",
    "RomTooLarge",
    "ShiftQuirk",
    "SpriteWrapPolicy",
    "StackOverflow",
    "StackUnderflow",
    "State",
    "Status",
    "UnknownOpcode",
    "VmError",
    "decode",
    "disassemble",
    "encode",
]

import logging
import random

import numpy as np

from enum import Enum
from typing import Optional, Sequence

from chipvm.config import Config
from chipvm.decoder import Operation, decode
from chipvm.errors import RomTooLarge
from chipvm.executor import DrawCallback, Executor, INSTRUCTION_SIZE
from chipvm.state import State, KEY_COUNT

logger = logging.getLogger(__name__)


class Status(Enum):
    RUNNING = "running"
    AWAITING_KEY = "awaiting_key"


class Machine:
    """
    One CHIP-8 virtual machine: a State and the Executor which runs programs against it.
    The machine does not keep time itself; whoever embeds it calls step() at the CPU rate and tick_timers() at 60 Hz.
    """
    def __init__(self, config: Optional[Config] = None, seed: Optional[int] = None, rng: Optional[random.Random] = None, on_draw: Optional[DrawCallback] = None):
        """
        Constructor.
        :param config: The configuration to run with, the defaults are used if not provided.
        :param seed: Seed for the random opcode, ignored when an rng is provided.
        :param rng: Source of randomness for the random opcode.
        :param on_draw: Called with the read-only framebuffer whenever the screen changes.
        """
        self.config = config or Config()
        self.state = State(self.config)
        self.executor = Executor(self.config, rng or random.Random(seed), on_draw)
        self.rom: Optional[bytes] = None

    def load_rom(self, rom: bytes) -> None:
        """
        Reset the machine and load a program, which is remembered for restart().
        A program which does not fit is rejected before anything is reset, leaving the current one running.
        :param rom: The raw program bytes.
        """
        capacity = self.config.program_capacity
        if len(rom) > capacity:
            raise RomTooLarge(len(rom), capacity)

        self.reset()
        self.state.load_rom(rom)
        self.rom = bytes(rom)
        logger.info(f"Loaded a {len(rom)} byte program at {hex(self.config.load_offset)}.")

    def reset(self) -> None:
        """
        Reset the state of the machine, leaving memory empty apart from the font.
        """
        self.state.reset()
        self.executor.draw_to_display(self.state)
        logger.debug("Machine reset.")

    def restart(self) -> None:
        """
        Reset the machine and reload the last program.
        """
        self.reset()
        if self.rom is not None:
            self.state.load_rom(self.rom)
            logger.debug("Program reloaded.")

    def fetch(self) -> Operation:
        return decode(self.state.read_word(self.state.program_counter))

    def step(self) -> Operation:
        """
        Fetch, decode and execute one instruction.  Any VmError propagates with the program counter left on the failing instruction.
        :return: The operation which was executed.
        """
        operation = self.fetch()
        try:
            self.executor.execute(operation, self.state)
        finally:
            self.state.previous_keys = list(self.state.keys)
        return operation

    def skip(self) -> None:
        """
        Move past the current instruction without executing it.
        """
        logger.debug(f"Skipping the instruction at {hex(self.state.program_counter)}.")
        self.state.program_counter += INSTRUCTION_SIZE
        self.state.waiting_for_key.is_waiting = False

    def tick_timers(self) -> None:
        """
        Count the delay and sound timers down by one, stopping at 0.
        """
        if self.state.delay > 0:
            self.state.delay -= 1
        if self.state.sound > 0:
            self.state.sound -= 1

    # region Keys
    def set_keys(self, keys: Sequence[bool]) -> None:
        """
        Replace the whole key state.
        :param keys: One flag per hexadecimal key, True when pressed.
        """
        if len(keys) != KEY_COUNT:
            raise ValueError(f"Expected {KEY_COUNT} key states, got {len(keys)}.")
        self.state.keys = [bool(pressed) for pressed in keys]

    def press_key(self, key: int) -> None:
        self.set_key(key, True)

    def release_key(self, key: int) -> None:
        self.set_key(key, False)

    def set_key(self, key: int, pressed: bool) -> None:
        if not 0 <= key < KEY_COUNT:
            raise ValueError(f"There is no key {key}, keys run from 0 to {KEY_COUNT - 1}.")
        self.state.keys[key] = pressed
        logger.debug(f"Key State Changed.  Key: {key}, Pressed: {pressed}.")
    # endregion

    @property
    def status(self) -> Status:
        return Status.AWAITING_KEY if self.state.waiting_for_key.is_waiting else Status.RUNNING

    @property
    def awaiting_register(self) -> Optional[int]:
        """
        The register which will receive the next key press, None if the machine is not waiting for one.
        """
        if not self.state.waiting_for_key.is_waiting:
            return None
        return self.state.waiting_for_key.storing_register

    @property
    def framebuffer(self) -> np.ndarray:
        return self.state.framebuffer

    @property
    def sound_active(self) -> bool:
        return self.state.sound_active

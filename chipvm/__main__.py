import argparse
import logging
import sys

import numpy as np

from pathlib import Path
from typing import List, Optional

from chipvm.clock import Clock
from chipvm.config import Config, ShiftQuirk, SpriteWrapPolicy, DEFAULT_CPU_HZ, GAME_START_ADDRESS
from chipvm.decoder import Operation, disassemble
from chipvm.errors import VmError
from chipvm.machine import Machine

logger = logging.getLogger(__name__)

PIXEL_ON = "#"
PIXEL_OFF = "."


def format_framebuffer(framebuffer: np.ndarray) -> str:
    """
    Render the framebuffer as text, one line per screen row.
    :param framebuffer: The pixels, indexed [x, y].
    :return: The rendered screen.
    """
    return "\n".join(
        "".join(PIXEL_ON if pixel else PIXEL_OFF for pixel in framebuffer[:, y])
        for y in range(framebuffer.shape[1])
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chipvm",
        description="CHIP-8 Interpreter",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("rom", nargs="?", help="ROM to run, a file picker is shown when omitted")
    parser.add_argument("--headless", action="store_true", help="Run without a window and print the screen when done")
    parser.add_argument("--frames", type=int, default=60, help="Number of 60 Hz frames to run in headless mode")
    parser.add_argument("--trace", action="store_true", help="Print every executed instruction in headless mode")
    parser.add_argument("--seed", type=int, default=None, help="Seed for the random number opcode")
    parser.add_argument("--cpu-hz", type=int, default=DEFAULT_CPU_HZ, help="Instructions executed per second")
    parser.add_argument("--load-offset", type=lambda value: int(value, 0), default=GAME_START_ADDRESS, help="Address the ROM is loaded at")
    parser.add_argument("--shift-quirk", choices=[quirk.value for quirk in ShiftQuirk], default=ShiftQuirk.MODERN.value, help="Shift Vx in place (modern) or Vy into Vx (legacy)")
    parser.add_argument("--sprite-wrap", choices=[policy.value for policy in SpriteWrapPolicy], default=SpriteWrapPolicy.CLIP.value, help="What happens to sprite pixels past the screen edge")
    parser.add_argument("--increment-index", action="store_true", help="Fx55 / Fx65 advance register I")
    parser.add_argument("--logic-resets-flag", action="store_true", help="8xy1 / 8xy2 / 8xy3 reset VF")
    parser.add_argument("--index-add-sets-flag", action="store_true", help="Fx1E sets VF when I leaves memory")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every executed instruction")
    return parser


def config_from_args(args: argparse.Namespace) -> Config:
    return Config(
        load_offset=args.load_offset,
        shift_quirk=ShiftQuirk(args.shift_quirk),
        load_store_increments_index=args.increment_index,
        sprite_wrap_policy=SpriteWrapPolicy(args.sprite_wrap),
        logic_resets_flag=args.logic_resets_flag,
        index_add_sets_flag=args.index_add_sets_flag,
        cpu_hz=args.cpu_hz,
    )


def run_headless(config: Config, rom_path: Path, frames: int, trace: bool, seed: Optional[int]) -> int:
    """
    Run a ROM for a fixed number of frames without any window, then print the screen.
    :return: The exit status, 1 if the program hit an error.
    """
    def print_operation(operation: Operation) -> None:
        print(f"{operation.word:04x}  {disassemble(operation)}")

    machine = Machine(config, seed=seed)
    clock = Clock(machine)
    status = 0
    try:
        machine.load_rom(rom_path.read_bytes())
        clock.run_frames(frames, print_operation if trace else None)
    except VmError as error:
        logger.error(f"Halted at {hex(machine.state.program_counter)}: {error}")
        status = 1

    print(format_framebuffer(machine.framebuffer))
    return status


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="[%(levelname)s]:  %(message)s", stream=sys.stdout)

    try:
        config = config_from_args(args)
    except ValueError as error:
        parser.error(str(error))

    if args.headless:
        if args.rom is None:
            parser.error("a ROM is required in headless mode")
        if not Path(args.rom).is_file():
            parser.error(f"ROM not found: {args.rom}")
        return run_headless(config, Path(args.rom), args.frames, args.trace, args.seed)

    from chipvm.frontend import Frontend

    Frontend(config, seed=args.seed).event_loop(args.rom)
    return 0


if __name__ == "__main__":
    sys.exit(main())

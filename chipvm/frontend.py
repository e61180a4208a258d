import logging
import easygui
import pygame

import numpy as np

from typing import Optional

from pathlib import Path

from chipvm.clock import Clock
from chipvm.config import Config, TIMER_HZ
from chipvm.errors import VmError
from chipvm.machine import Machine
from chipvm.state import SCREEN_WIDTH, SCREEN_HEIGHT

logger = logging.getLogger(__name__)

# Constants
SCALED_SCREEN_WIDTH = 800
SCALED_SCREEN_HEIGHT = 400
SOUND_FREQUENCY = 44100
SOUND_BUFFER = 4096
TONE_HZ = 550
ROM_EXTENSIONS = (".ch8", ".chip8")
GAMES_PATH = str(Path.cwd().joinpath("*.ch8"))
CAPTION = "ChipVM"

COLOUR_PALETTE = [(0, 0, 0), (0, 255, 0)]

KEY_LOOKUP = {
    pygame.K_1: 1,
    pygame.K_q: 4,
    pygame.K_a: 7,
    pygame.K_z: 10,
    pygame.K_2: 2,
    pygame.K_w: 5,
    pygame.K_s: 8,
    pygame.K_x: 0,
    pygame.K_3: 3,
    pygame.K_e: 6,
    pygame.K_d: 9,
    pygame.K_c: 11,
    pygame.K_4: 12,
    pygame.K_r: 13,
    pygame.K_f: 14,
    pygame.K_v: 15,
}


def build_tone() -> np.ndarray:
    """
    One second of a sine wave at the buzzer pitch, as 16 bit mono samples.
    """
    # Borrowed from http://shallowsky.com/blog/programming/python-play-chords.html
    length = SOUND_FREQUENCY / TONE_HZ
    omega = np.pi * 2 / length
    x_values = np.arange(int(length)) * omega
    one_cycle = SOUND_BUFFER * np.sin(x_values)
    return np.resize(one_cycle, (SOUND_FREQUENCY,)).astype(np.int16)


class Frontend:
    """
    A pygame window, speaker and keyboard wrapped around a Machine.  Everything runs on one thread, one 60 Hz frame at a time.
    """
    def __init__(self, config: Optional[Config] = None, seed: Optional[int] = None):
        """
        Constructor.
        """
        pygame.mixer.init(SOUND_FREQUENCY, -16, 1, SOUND_BUFFER)
        pygame.init()
        pygame.display.init()

        self.machine = Machine(config, seed=seed, on_draw=self.on_draw)
        self.clock = Clock(self.machine)
        self.frame_clock = pygame.time.Clock()
        self.game_loaded = False
        self.halted = False
        self.screen_dirty = True
        self.sound_playing = False

        self.sound_player = pygame.sndarray.make_sound(build_tone())

        pygame.display.set_caption(CAPTION)
        self.screen = pygame.display.set_mode((SCALED_SCREEN_WIDTH, SCALED_SCREEN_HEIGHT), 0, 8)
        self.screen.set_palette(COLOUR_PALETTE)
        self.inter_screen = pygame.Surface((SCREEN_WIDTH, SCREEN_HEIGHT), 0, 8)
        self.inter_screen.set_palette(COLOUR_PALETTE)

    def on_draw(self, framebuffer: np.ndarray) -> None:
        self.screen_dirty = True

    def draw_to_display(self) -> None:
        """
        Update the display.
        """
        pygame.surfarray.blit_array(self.inter_screen, np.array(self.machine.framebuffer))
        pygame.transform.scale(self.inter_screen, (SCALED_SCREEN_WIDTH, SCALED_SCREEN_HEIGHT), self.screen)
        pygame.display.flip()
        self.screen_dirty = False

    def update_sound(self) -> None:
        """
        Start or stop the tone to follow the sound timer.
        """
        if self.machine.sound_active and not self.halted:
            if not self.sound_playing:
                self.sound_player.play(-1)
                self.sound_playing = True
        elif self.sound_playing:
            self.sound_player.stop()
            self.sound_playing = False

    def load_game(self, file_name: Optional[str] = None) -> None:
        """
        Stop any currently running game, load the selected game into memory, and start it up.
        :param file_name: The ROM to load, the file picker is shown when not provided.
        """
        if file_name is None:
            file_name = easygui.fileopenbox(title="Select a Game", default=GAMES_PATH, filetypes=[["*.ch8", "*.chip8", "CHIP-8"]])

        if not file_name:
            easygui.msgbox("Pick a game to play!  Press the L key to re-open the game picker.", "No Game Selected")
            return

        path = Path(file_name)

        if not path.exists():
            easygui.msgbox(f"Game could not be loaded as the path does not exist!  Path: {path}.", "Game Not Found")
            return

        if path.suffix.lower() not in ROM_EXTENSIONS:
            easygui.msgbox(f"Game does not appear to be a CHIP-8 game as the file type is not one of {', '.join(ROM_EXTENSIONS)}.  Path: {path}.", "Wrong File Extension")
            return

        logger.debug(f"Loading game at path {path}.")
        try:
            self.machine.load_rom(path.read_bytes())
        except VmError as error:
            logger.error(f"Could not load {path}: {error}")
            easygui.msgbox(str(error), "Game Not Loaded")
            return

        pygame.display.set_caption(path.stem)
        self.game_loaded = True
        self.halted = False

    def halt(self, error: VmError) -> None:
        """
        Stop running the current game after the machine reported an error.
        """
        self.halted = True
        self.update_sound()
        logger.error(f"Halted at {hex(self.machine.state.program_counter)}: {error}")
        easygui.msgbox(f"{error}\n\nPress the L key to load another game.", "Program Error")

    def handle_key(self, event: pygame.event.Event) -> None:
        pressed = event.type == pygame.KEYDOWN

        if pressed and event.key == pygame.K_l:
            self.load_game()
            return

        # CHIP-8 Controls
        key = KEY_LOOKUP.get(event.key, None)
        if key is not None:
            self.machine.set_key(key, pressed)

    def event_loop(self, file_name: Optional[str] = None) -> None:
        """
        Loop which handles all events and runs the machine one frame at a time until the window is closed.
        :param file_name: The ROM to start with, the file picker is shown when not provided.
        """
        self.load_game(file_name)

        while True:
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    self.sound_player.stop()
                    pygame.quit()
                    return
                elif event.type == pygame.KEYDOWN or event.type == pygame.KEYUP:
                    self.handle_key(event)

            if self.game_loaded and not self.halted:
                try:
                    self.clock.run_frame()
                except VmError as error:
                    self.halt(error)

            self.update_sound()
            if self.screen_dirty:
                self.draw_to_display()
            self.frame_clock.tick(TIMER_HZ)

import pytest

from chipvm.config import Config, GAME_START_ADDRESS, MEMORY_SIZE
from chipvm.errors import MemoryOutOfBounds, RomTooLarge, StackOverflow, StackUnderflow
from chipvm.state import State, DIGIT_SPRITES, FONT_ADDRESS, INTERPRETER_END_ADDRESS, STACK_CAPACITY


class TestHelperMethods:
    def setup_method(self):
        self.state = State()

    def test_load_digit_sprites(self):
        for index, byte in enumerate(self.state.ram):
            if FONT_ADDRESS <= index < FONT_ADDRESS + len(DIGIT_SPRITES):
                assert byte == DIGIT_SPRITES[index - FONT_ADDRESS], "Digit sprite not loaded correctly."
            else:
                assert byte == 0, "Memory outside the font area is not empty."
        assert len(DIGIT_SPRITES) == INTERPRETER_END_ADDRESS, "The font should fill the interpreter area exactly."

    def test_initial_state(self):
        assert self.state.program_counter == GAME_START_ADDRESS, "Program counter starting at an unexpected value."
        assert self.state.register_i == 0, "Register I starting at an unexpected value."
        assert not any(self.state.registers), "Registers are not all zero."
        assert self.state.stack == [], "Stack starting out non-empty."
        assert self.state.delay == 0 and self.state.sound == 0, "Timers starting at an unexpected value."
        assert not self.state.pixels.any(), "Screen is not clear."
        assert not any(self.state.keys), "Keys starting out pressed."
        assert not self.state.waiting_for_key.is_waiting, "Starting out waiting for a key."

    def test_load_rom(self):
        self.state.load_rom(bytes((0x00, 0xE0, 0x12, 0x00)))
        assert self.state.ram[GAME_START_ADDRESS:GAME_START_ADDRESS + 4] == bytes((0x00, 0xE0, 0x12, 0x00)), "Program not copied to the load offset."
        assert self.state.read_word(GAME_START_ADDRESS) == 0x00E0, "Instruction words should be big-endian."

    def test_load_rom_at_custom_offset(self):
        state = State(Config(load_offset=0x600))
        state.load_rom(bytes((0xAB,)))
        assert state.program_counter == 0x600, "Program counter should start at the load offset."
        assert state.ram[0x600] == 0xAB, "Program not copied to the load offset."

    def test_load_rom_too_large(self):
        capacity = MEMORY_SIZE - GAME_START_ADDRESS
        self.state.load_rom(bytes([1]) * capacity)
        assert self.state.ram[MEMORY_SIZE - 1] == 1, "A program filling all of memory should load."

        state = State()
        with pytest.raises(RomTooLarge):
            state.load_rom(bytes([1]) * (capacity + 1))
        assert state.ram[GAME_START_ADDRESS] == 0, "Memory was written by a program which did not fit."

    def test_reset(self):
        self.state.load_rom(bytes((0x12, 0x00)))
        self.state.registers[3] = 9
        self.state.register_i = 0x300
        self.state.program_counter = 0x400
        self.state.stack = [0x202]
        self.state.delay = 4
        self.state.pixels[1, 1] = 1
        self.state.keys[2] = True

        self.state.reset()
        assert self.state.ram[GAME_START_ADDRESS] == 0, "Program memory was not cleared."
        assert self.state.ram[FONT_ADDRESS:FONT_ADDRESS + len(DIGIT_SPRITES)] == DIGIT_SPRITES, "Font was not reloaded."
        assert self.state.registers[3] == 0, "Registers were not cleared."
        assert self.state.register_i == 0, "Register I was not cleared."
        assert self.state.program_counter == GAME_START_ADDRESS, "Program counter was not reset."
        assert self.state.stack == [], "Stack was not cleared."
        assert self.state.delay == 0, "Delay timer was not cleared."
        assert not self.state.pixels.any(), "Screen was not cleared."
        assert not self.state.keys[2], "Keys were not released."


class TestMemory:
    def setup_method(self):
        self.state = State()

    def test_read_write_byte(self):
        self.state.write_byte(0xFFF, 0x42)
        assert self.state.read_byte(0xFFF) == 0x42, "Byte not stored at the last address."

        with pytest.raises(MemoryOutOfBounds) as error:
            self.state.read_byte(MEMORY_SIZE)
        assert error.value.address == MEMORY_SIZE, "Error reported the wrong address."

        with pytest.raises(MemoryOutOfBounds):
            self.state.write_byte(-1, 0)

    def test_read_word_across_the_end(self):
        with pytest.raises(MemoryOutOfBounds) as error:
            self.state.read_word(0xFFF)
        assert error.value.address == 0x1000, "Error reported the wrong address."

    def test_read_block(self):
        self.state.write_block(0x300, bytes((1, 2, 3)))
        assert self.state.read_block(0x300, 3) == bytes((1, 2, 3)), "Block read back incorrectly."
        assert self.state.read_block(0xFFF, 0) == b"", "An empty read should always succeed."

    def test_write_block_out_of_bounds(self):
        with pytest.raises(MemoryOutOfBounds):
            self.state.write_block(0xFFE, bytes((1, 2, 3)))
        assert self.state.ram[0xFFE] == 0 and self.state.ram[0xFFF] == 0, "Memory was partially written before the error."


class TestStack:
    def setup_method(self):
        self.state = State()

    def test_push_pop(self):
        self.state.push(0x202)
        self.state.push(0x304)
        assert self.state.pop() == 0x304, "Stack is not last in, first out."
        assert self.state.pop() == 0x202, "Stack is not last in, first out."

        with pytest.raises(StackUnderflow):
            self.state.pop()

    def test_capacity(self):
        for address in range(STACK_CAPACITY):
            self.state.push(address)

        with pytest.raises(StackOverflow):
            self.state.push(0x200)
        assert len(self.state.stack) == STACK_CAPACITY, "Stack grew past its capacity."


class TestDisplayAndKeys:
    def setup_method(self):
        self.state = State()

    def test_framebuffer_is_read_only(self):
        framebuffer = self.state.framebuffer
        assert framebuffer.shape == (64, 32), "Framebuffer has the wrong dimensions."

        with pytest.raises(ValueError):
            framebuffer[0, 0] = 1

        self.state.pixels[0, 0] = 1
        assert framebuffer[0, 0] == 1, "Framebuffer should be a view of the live pixels."

    def test_sound_active(self):
        assert not self.state.sound_active, "Buzzer active with a stopped sound timer."
        self.state.sound = 1
        assert self.state.sound_active, "Buzzer inactive with a running sound timer."

    def test_newly_pressed_keys(self):
        self.state.keys[3] = True
        self.state.keys[1] = True
        self.state.previous_keys[3] = True
        assert self.state.newly_pressed_keys() == [1], "Held keys should not count as newly pressed."

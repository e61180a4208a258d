import logging
import random

import numpy as np

from typing import Callable, Optional, Tuple

from chipvm.config import Config, ShiftQuirk, SpriteWrapPolicy, MEMORY_SIZE
from chipvm.decoder import Instruction, Operation
from chipvm.errors import UnknownOpcode, VmError
from chipvm.state import State, FLAG_REGISTER, FONT_ADDRESS, FONT_SPRITE_HEIGHT, SCREEN_HEIGHT, SCREEN_WIDTH

logger = logging.getLogger(__name__)

# Constants
BYTE_MASK = 255
WORD_MASK = 0xFFFF
SPRITE_WIDTH = 8
INSTRUCTION_SIZE = 2

DrawCallback = Callable[[np.ndarray], None]

HANDLERS = {
    Instruction.SYS: "opcode_call_machine_code_routine",
    Instruction.CLS: "opcode_clear_screen",
    Instruction.RET: "opcode_return_from_subroutine",
    Instruction.JP: "opcode_goto",
    Instruction.CALL: "opcode_call_subroutine",
    Instruction.SE_BYTE: "opcode_if_equal",
    Instruction.SNE_BYTE: "opcode_if_not_equal",
    Instruction.SE_REG: "opcode_if_register_equal",
    Instruction.LD_BYTE: "opcode_set_register_value",
    Instruction.ADD_BYTE: "opcode_add_value",
    Instruction.LD_REG: "opcode_set_register_value_other_register",
    Instruction.OR: "opcode_set_register_bitwise_or",
    Instruction.AND: "opcode_set_register_bitwise_and",
    Instruction.XOR: "opcode_set_register_bitwise_xor",
    Instruction.ADD_REG: "opcode_add_other_register",
    Instruction.SUB: "opcode_subtract_from_first_register",
    Instruction.SHR: "opcode_bit_shift_right",
    Instruction.SUBN: "opcode_subtract_from_second_register",
    Instruction.SHL: "opcode_bit_shift_left",
    Instruction.SNE_REG: "opcode_if_register_not_equal",
    Instruction.LD_I: "opcode_set_register_i",
    Instruction.JP_V0: "opcode_goto_addition",
    Instruction.RND: "opcode_random_bitwise_and",
    Instruction.DRW: "opcode_draw_sprite",
    Instruction.SKP: "opcode_if_key_pressed",
    Instruction.SKNP: "opcode_if_key_not_pressed",
    Instruction.LD_VX_DT: "opcode_get_delay_timer",
    Instruction.LD_VX_K: "opcode_wait_for_key_press",
    Instruction.LD_DT_VX: "opcode_set_delay_timer",
    Instruction.LD_ST_VX: "opcode_set_sound_timer",
    Instruction.ADD_I: "opcode_register_i_addition",
    Instruction.LD_F: "opcode_set_register_i_to_hex_sprite_address",
    Instruction.LD_B: "opcode_binary_coded_decimal",
    Instruction.LD_MEM_VX: "opcode_register_dump",
    Instruction.LD_VX_MEM: "opcode_register_load",
}


class Executor:
    """
    Applies decoded operations to a State.
    """
    def __init__(self, config: Optional[Config] = None, rng: Optional[random.Random] = None, on_draw: Optional[DrawCallback] = None):
        """
        Constructor.
        :param config: The quirk settings to execute with.
        :param rng: Source of randomness for the random opcode, seed it for reproducible runs.
        :param on_draw: Called with the read-only framebuffer whenever the screen changes.
        """
        self.config = config or Config()
        self.rng = rng or random.Random()
        self.on_draw = on_draw

    def execute(self, operation: Operation, state: State) -> None:
        """
        Run one operation.  The program counter is moved past the instruction first so that jumps, calls and skips can overwrite or extend it.
        If the operation raises, the program counter is put back on the failing instruction and nothing else has been modified.
        :param operation: The operation to execute.
        :param state: The state to execute against.
        """
        handler_name = HANDLERS.get(operation.instruction)
        if handler_name is None:
            raise UnknownOpcode(operation.word)

        program_counter = state.program_counter
        state.program_counter += INSTRUCTION_SIZE
        try:
            getattr(self, handler_name)(state, operation)
        except VmError:
            state.program_counter = program_counter
            raise

    def draw_to_display(self, state: State) -> None:
        if self.on_draw is not None:
            self.on_draw(state.framebuffer)

    # region Helpers
    @staticmethod
    def bounded_add(first: int, second: int) -> Tuple[int, int]:
        """
        Add two values, bounded by the confines of a byte.
        :param first: The first addend.
        :param second: The second addend.
        :return: The truncated sum and the carry (1 if the sum did not fit in a byte, 0 otherwise).
        """
        total = first + second
        return total & BYTE_MASK, 1 if total > BYTE_MASK else 0

    @staticmethod
    def bounded_subtract(minuend: int, subtrahend: int) -> Tuple[int, int]:
        """
        Subtract the subtrahend from the minuend, bounded by the confines of a byte.
        :param minuend: The integer from which to subtract.
        :param subtrahend: The integer to subtract.
        :return: The result of the subtraction and the not borrow (1 if there was no borrow, 0 otherwise).
        """
        difference_of_registers = minuend - subtrahend
        result = difference_of_registers % 256
        not_borrow = 1 if difference_of_registers >= 0 else 0
        return result, not_borrow

    @staticmethod
    def skip_next_instruction(state: State, condition: bool) -> None:
        if condition:
            state.program_counter += INSTRUCTION_SIZE
            logger.debug("Instruction skipped.")
        else:
            logger.debug("Instruction not skipped.")

    def shift_source(self, operation: Operation) -> int:
        return operation.y if self.config.shift_quirk is ShiftQuirk.LEGACY else operation.x

    def apply_logic_quirk(self, state: State) -> None:
        if self.config.logic_resets_flag:
            state.registers[FLAG_REGISTER] = 0
    # endregion

    # region Opcodes
    def opcode_call_machine_code_routine(self, state: State, operation: Operation) -> None:
        """
        Machine code routines only existed on the original hardware, so this is ignored.
        """
        logger.debug(f"Execute Opcode {operation.word:04x}: Ignoring call to machine code routine at {hex(operation.nnn)}.")

    def opcode_clear_screen(self, state: State, operation: Operation) -> None:
        """
        Clear the screen.
        """
        state.pixels.fill(0)
        self.draw_to_display(state)
        logger.debug(f"Execute Opcode {operation.word:04x}: Clearing the screen.")

    def opcode_return_from_subroutine(self, state: State, operation: Operation) -> None:
        """
        Return from the current subroutine.
        """
        state.program_counter = state.pop()
        logger.debug(f"Execute Opcode {operation.word:04x}: Return from subroutine, continue at {hex(state.program_counter)}.")

    def opcode_goto(self, state: State, operation: Operation) -> None:
        """
        Jump to the provided address.
        """
        state.program_counter = operation.nnn
        logger.debug(f"Execute Opcode {operation.word:04x}: Jump to address {hex(operation.nnn)}.")

    def opcode_call_subroutine(self, state: State, operation: Operation) -> None:
        """
        Call the subroutine at the given address.  The address of the following instruction is pushed to the stack.
        """
        state.push(state.program_counter)
        state.program_counter = operation.nnn
        logger.debug(f"Execute Opcode {operation.word:04x}: Call subroutine at address {hex(operation.nnn)}.")

    def opcode_if_equal(self, state: State, operation: Operation) -> None:
        """
        Skip the next instruction if the value of the provided register is equal to the provided value.
        """
        register_value = state.registers[operation.x]
        logger.debug(f"Execute Opcode {operation.word:04x}: Skip next instruction if register {operation.x}'s value ({register_value}) is {operation.kk}.")
        self.skip_next_instruction(state, register_value == operation.kk)

    def opcode_if_not_equal(self, state: State, operation: Operation) -> None:
        """
        Skip the next instruction if the value of the provided register is not equal to the provided value.
        """
        register_value = state.registers[operation.x]
        logger.debug(f"Execute Opcode {operation.word:04x}: Skip next instruction if register {operation.x}'s value ({register_value}) is not {operation.kk}.")
        self.skip_next_instruction(state, register_value != operation.kk)

    def opcode_if_register_equal(self, state: State, operation: Operation) -> None:
        """
        Skip the next instruction if the values of the two provided registers are equal.
        """
        first_register_value = state.registers[operation.x]
        second_register_value = state.registers[operation.y]
        logger.debug(f"Execute Opcode {operation.word:04x}: Skip next instruction if register {operation.x}'s value ({first_register_value}) is equal to register {operation.y}'s value ({second_register_value}).")
        self.skip_next_instruction(state, first_register_value == second_register_value)

    def opcode_set_register_value(self, state: State, operation: Operation) -> None:
        state.registers[operation.x] = operation.kk
        logger.debug(f"Execute Opcode {operation.word:04x}: Set the value of register {operation.x} to {operation.kk}.")

    def opcode_add_value(self, state: State, operation: Operation) -> None:
        """
        Adds the provided value to the value of the provided register.  The carry flag is not touched.
        """
        state.registers[operation.x] = (state.registers[operation.x] + operation.kk) & BYTE_MASK
        logger.debug(f"Execute Opcode {operation.word:04x}: Add {operation.kk} to the value of register {operation.x}.")

    def opcode_set_register_value_other_register(self, state: State, operation: Operation) -> None:
        second_register_value = state.registers[operation.y]
        state.registers[operation.x] = second_register_value
        logger.debug(f"Execute Opcode {operation.word:04x}: Set the value of register {operation.x} to register {operation.y}'s value ({second_register_value}).")

    def opcode_set_register_bitwise_or(self, state: State, operation: Operation) -> None:
        first_register_value = state.registers[operation.x]
        second_register_value = state.registers[operation.y]
        result = first_register_value | second_register_value
        state.registers[operation.x] = result
        self.apply_logic_quirk(state)
        logger.debug(f"Execute Opcode {operation.word:04x}: Set register {operation.x} to the bitwise or of itself and register {operation.y} ({first_register_value} | {second_register_value} = {result}).")

    def opcode_set_register_bitwise_and(self, state: State, operation: Operation) -> None:
        first_register_value = state.registers[operation.x]
        second_register_value = state.registers[operation.y]
        result = first_register_value & second_register_value
        state.registers[operation.x] = result
        self.apply_logic_quirk(state)
        logger.debug(f"Execute Opcode {operation.word:04x}: Set register {operation.x} to the bitwise and of itself and register {operation.y} ({first_register_value} & {second_register_value} = {result}).")

    def opcode_set_register_bitwise_xor(self, state: State, operation: Operation) -> None:
        first_register_value = state.registers[operation.x]
        second_register_value = state.registers[operation.y]
        result = first_register_value ^ second_register_value
        state.registers[operation.x] = result
        self.apply_logic_quirk(state)
        logger.debug(f"Execute Opcode {operation.word:04x}: Set register {operation.x} to the bitwise xor of itself and register {operation.y} ({first_register_value} ^ {second_register_value} = {result}).")

    def opcode_add_other_register(self, state: State, operation: Operation) -> None:
        """
        Sets the first register to the sum of itself and the second register, then sets the carry flag (register 15).
        Both operands are read before either write, and the flag is written last, so it wins when the destination is register 15.
        """
        first_register_value = state.registers[operation.x]
        second_register_value = state.registers[operation.y]
        result, carry = self.bounded_add(first_register_value, second_register_value)
        state.registers[operation.x] = result
        state.registers[FLAG_REGISTER] = carry
        logger.debug(f"Execute Opcode {operation.word:04x}: Set register {operation.x} to the sum of itself and register {operation.y} ({first_register_value} + {second_register_value} = {result}, carry = {carry}).")

    def opcode_subtract_from_first_register(self, state: State, operation: Operation) -> None:
        """
        Sets the first register to itself minus the second register, then sets the not borrow flag (register 15).
        """
        first_register_value = state.registers[operation.x]
        second_register_value = state.registers[operation.y]
        result, not_borrow = self.bounded_subtract(first_register_value, second_register_value)
        state.registers[operation.x] = result
        state.registers[FLAG_REGISTER] = not_borrow
        logger.debug(f"Execute Opcode {operation.word:04x}: Set register {operation.x} to the difference of itself and register {operation.y} ({first_register_value} - {second_register_value} = {result}, not borrow = {not_borrow}).")

    def opcode_bit_shift_right(self, state: State, operation: Operation) -> None:
        """
        Shift right by 1 into the first register, then set register 15 to the bit shifted out.
        """
        source_register = self.shift_source(operation)
        source_value = state.registers[source_register]
        bit_shift = source_value >> 1
        least_significant_bit = source_value & 1
        state.registers[operation.x] = bit_shift
        state.registers[FLAG_REGISTER] = least_significant_bit
        logger.debug(f"Execute Opcode {operation.word:04x}: Shift the value of register {source_register} right by 1 into register {operation.x} ({source_value} >> 1 = {bit_shift}, shifted out bit = {least_significant_bit}).")

    def opcode_subtract_from_second_register(self, state: State, operation: Operation) -> None:
        """
        Sets the first register to the second register minus itself, then sets the not borrow flag (register 15).
        """
        first_register_value = state.registers[operation.x]
        second_register_value = state.registers[operation.y]
        result, not_borrow = self.bounded_subtract(second_register_value, first_register_value)
        state.registers[operation.x] = result
        state.registers[FLAG_REGISTER] = not_borrow
        logger.debug(f"Execute Opcode {operation.word:04x}: Set register {operation.x} to the difference of register {operation.y} and itself ({second_register_value} - {first_register_value} = {result}, not borrow = {not_borrow}).")

    def opcode_bit_shift_left(self, state: State, operation: Operation) -> None:
        """
        Shift left by 1 into the first register, then set register 15 to the bit shifted out.
        """
        source_register = self.shift_source(operation)
        source_value = state.registers[source_register]
        bit_shift = (source_value << 1) & BYTE_MASK
        most_significant_bit = source_value >> 7
        state.registers[operation.x] = bit_shift
        state.registers[FLAG_REGISTER] = most_significant_bit
        logger.debug(f"Execute Opcode {operation.word:04x}: Shift the value of register {source_register} left by 1 into register {operation.x} ({source_value} << 1 = {bit_shift}, shifted out bit = {most_significant_bit}).")

    def opcode_if_register_not_equal(self, state: State, operation: Operation) -> None:
        first_register_value = state.registers[operation.x]
        second_register_value = state.registers[operation.y]
        logger.debug(f"Execute Opcode {operation.word:04x}: Skip next instruction if register {operation.x}'s value ({first_register_value}) is not equal to register {operation.y}'s value ({second_register_value}).")
        self.skip_next_instruction(state, first_register_value != second_register_value)

    def opcode_set_register_i(self, state: State, operation: Operation) -> None:
        state.register_i = operation.nnn
        logger.debug(f"Execute Opcode {operation.word:04x}: Set register I to {hex(operation.nnn)}.")

    def opcode_goto_addition(self, state: State, operation: Operation) -> None:
        """
        Jump to the provided address plus the value of register 0.  The target is not checked here; fetching from it fails if it is past the end of memory.
        """
        register_value = state.registers[0]
        state.program_counter = operation.nnn + register_value
        logger.debug(f"Execute Opcode {operation.word:04x}: Jump to the provided address plus the value of register 0 ({hex(operation.nnn)} + {hex(register_value)} = {hex(state.program_counter)}).")

    def opcode_random_bitwise_and(self, state: State, operation: Operation) -> None:
        """
        Set the value of the provided register to the bitwise and of the provided value and a random number [0, 255].
        """
        random_value = self.rng.randint(0, 255)
        result = operation.kk & random_value
        state.registers[operation.x] = result
        logger.debug(f"Execute Opcode {operation.word:04x}: Set register {operation.x} to the bitwise and of the provided value and a random number ({operation.kk} & {random_value} = {result}).")

    def opcode_draw_sprite(self, state: State, operation: Operation) -> None:
        """
        Draws the sprite with the provided height found at the address in register I.  The starting coordinates wrap around the screen;
        pixels which then run off the right or bottom edge are clipped or wrapped depending on the sprite wrap policy.
        The collision flag (register 15) is set to 1 if a pixel was unset, 0 otherwise.
        """
        sprite = state.read_block(state.register_i, operation.n)
        register_x_value = state.registers[operation.x]
        register_y_value = state.registers[operation.y]
        origin_x = register_x_value % SCREEN_WIDTH
        origin_y = register_y_value % SCREEN_HEIGHT
        wrap = self.config.sprite_wrap_policy is SpriteWrapPolicy.WRAP

        pixel_unset = 0
        for row, byte in enumerate(sprite):
            y_coordinate = origin_y + row
            if y_coordinate >= SCREEN_HEIGHT:
                if not wrap:
                    break
                y_coordinate %= SCREEN_HEIGHT
            for column in range(SPRITE_WIDTH):
                x_coordinate = origin_x + column
                if x_coordinate >= SCREEN_WIDTH:
                    if not wrap:
                        break
                    x_coordinate %= SCREEN_WIDTH
                pixel = (byte >> (SPRITE_WIDTH - 1 - column)) & 1
                if pixel == 0:
                    continue
                if state.pixels[x_coordinate, y_coordinate] == 1:
                    pixel_unset = 1
                state.pixels[x_coordinate, y_coordinate] ^= 1
        state.registers[FLAG_REGISTER] = pixel_unset
        self.draw_to_display(state)
        logger.debug(f"Execute Opcode {operation.word:04x}: Drawing the sprite with a height of {operation.n} found at address {hex(state.register_i)} at ({origin_x}, {origin_y}), collision = {pixel_unset}.")

    def opcode_if_key_pressed(self, state: State, operation: Operation) -> None:
        """
        Skip the next instruction if the key represented by the value of the provided register is pressed.
        """
        key = state.registers[operation.x] & 0xF
        pressed = state.keys[key]
        logger.debug(f"Execute Opcode {operation.word:04x}: Skip next instruction if key {key} from register {operation.x} is pressed ({pressed}).")
        self.skip_next_instruction(state, pressed)

    def opcode_if_key_not_pressed(self, state: State, operation: Operation) -> None:
        """
        Skip the next instruction if the key represented by the value of the provided register is not pressed.
        """
        key = state.registers[operation.x] & 0xF
        pressed = state.keys[key]
        logger.debug(f"Execute Opcode {operation.word:04x}: Skip next instruction if key {key} from register {operation.x} is not pressed ({pressed}).")
        self.skip_next_instruction(state, not pressed)

    def opcode_get_delay_timer(self, state: State, operation: Operation) -> None:
        state.registers[operation.x] = state.delay
        logger.debug(f"Execute Opcode {operation.word:04x}: Set the value of register {operation.x} to the value of the delay timer ({state.delay}).")

    def opcode_wait_for_key_press(self, state: State, operation: Operation) -> None:
        """
        Hold execution on this instruction until a key is newly pressed, then store that key in the provided register.
        Execution is not blocked: every step re-runs this instruction until a press is seen.
        """
        newly_pressed = state.newly_pressed_keys()
        if not newly_pressed:
            state.program_counter -= INSTRUCTION_SIZE
            if not state.waiting_for_key.is_waiting:
                logger.debug(f"Execute Opcode {operation.word:04x}: Waiting for a keypress to store in register {operation.x}.")
            state.waiting_for_key.is_waiting = True
            state.waiting_for_key.storing_register = operation.x
            return

        key = newly_pressed[0]
        state.registers[operation.x] = key
        state.waiting_for_key.is_waiting = False
        logger.debug(f"Execute Opcode {operation.word:04x}: Storing the key {key} in register {operation.x}, resuming execution.")

    def opcode_set_delay_timer(self, state: State, operation: Operation) -> None:
        register_value = state.registers[operation.x]
        state.delay = register_value
        logger.debug(f"Execute Opcode {operation.word:04x}: Set the delay timer to the value of register {operation.x} ({register_value}).")

    def opcode_set_sound_timer(self, state: State, operation: Operation) -> None:
        register_value = state.registers[operation.x]
        state.sound = register_value
        logger.debug(f"Execute Opcode {operation.word:04x}: Set the sound timer to the value of register {operation.x} ({register_value}).")

    def opcode_register_i_addition(self, state: State, operation: Operation) -> None:
        """
        Add the value of the provided register to register I.
        With the index overflow quirk, register I stays within memory and the overflow flag (register 15) is set when it had to wrap.
        """
        register_value = state.registers[operation.x]
        register_i_value = state.register_i
        sum_of_registers = register_i_value + register_value
        if self.config.index_add_sets_flag:
            state.register_i = sum_of_registers % MEMORY_SIZE
            state.registers[FLAG_REGISTER] = 1 if sum_of_registers >= MEMORY_SIZE else 0
        else:
            state.register_i = sum_of_registers & WORD_MASK
        logger.debug(f"Execute Opcode {operation.word:04x}: Add the value of register {operation.x} to register I ({register_i_value} + {register_value} = {state.register_i}).")

    def opcode_set_register_i_to_hex_sprite_address(self, state: State, operation: Operation) -> None:
        """
        Sets register I to the address of the font sprite for the hexadecimal digit in the provided register.
        """
        digit = state.registers[operation.x] & 0xF
        state.register_i = FONT_ADDRESS + digit * FONT_SPRITE_HEIGHT
        logger.debug(f"Execute Opcode {operation.word:04x}: Set register I to the address ({hex(state.register_i)}) of the sprite for digit {digit:x}.")

    def opcode_binary_coded_decimal(self, state: State, operation: Operation) -> None:
        """
        Store the Binary Coded Decimal representation of the value of the provided register in memory, starting at the value of register I.
        Hundreds digit stored in memory at the location of the value of register I.
        Tens digit stored in memory at the location of the value of register I + 1.
        Units digit stored in memory at the location of the value of register I + 2.
        """
        register_value = state.registers[operation.x]
        hundreds = register_value // 100 % 10
        tens = register_value // 10 % 10
        units = register_value % 10
        state.write_block(state.register_i, bytes((hundreds, tens, units)))
        logger.debug(f"Execute Opcode {operation.word:04x}: Store the BCD of register {operation.x} ({register_value}) at {hex(state.register_i)} ({hundreds}, {tens}, {units}).")

    def opcode_register_dump(self, state: State, operation: Operation) -> None:
        """
        Store the values of all registers from register 0 to the provided register in memory, starting at the value of register I.
        """
        last_register = operation.x
        state.write_block(state.register_i, bytes(state.registers[:last_register + 1]))
        logger.debug(f"Execute Opcode {operation.word:04x}: Dumped registers 0 to {last_register} into memory at {hex(state.register_i)}.")
        if self.config.load_store_increments_index:
            state.register_i = (state.register_i + last_register + 1) & WORD_MASK

    def opcode_register_load(self, state: State, operation: Operation) -> None:
        """
        Load the values of all registers from register 0 to the provided register from memory, starting at the value of register I.
        """
        last_register = operation.x
        state.registers[:last_register + 1] = state.read_block(state.register_i, last_register + 1)
        logger.debug(f"Execute Opcode {operation.word:04x}: Loaded registers 0 to {last_register} from memory at {hex(state.register_i)}.")
        if self.config.load_store_increments_index:
            state.register_i = (state.register_i + last_register + 1) & WORD_MASK
    # endregion

"""
Instruction decoding.

Every 16-bit word decodes to an Operation.  Words which are not part of the CHIP-8 instruction set decode to an
Operation of kind Instruction.UNKNOWN carrying the raw word, so decoding itself never fails; the executor is the one
that refuses to run them.
"""
from enum import Enum
from typing import NamedTuple

# Constants
FAMILY_MASK = 0xF000
X_MASK = 0x0F00
Y_MASK = 0x00F0
NIBBLE_MASK = 0x000F
BYTE_MASK = 0x00FF
ADDRESS_MASK = 0x0FFF
CLEAR_SCREEN_OPCODE = 0x00E0
RETURN_FROM_SUBROUTINE_OPCODE = 0x00EE


class Instruction(Enum):
    SYS = "0nnn"
    CLS = "00E0"
    RET = "00EE"
    JP = "1nnn"
    CALL = "2nnn"
    SE_BYTE = "3xkk"
    SNE_BYTE = "4xkk"
    SE_REG = "5xy0"
    LD_BYTE = "6xkk"
    ADD_BYTE = "7xkk"
    LD_REG = "8xy0"
    OR = "8xy1"
    AND = "8xy2"
    XOR = "8xy3"
    ADD_REG = "8xy4"
    SUB = "8xy5"
    SHR = "8xy6"
    SUBN = "8xy7"
    SHL = "8xyE"
    SNE_REG = "9xy0"
    LD_I = "Annn"
    JP_V0 = "Bnnn"
    RND = "Cxkk"
    DRW = "Dxyn"
    SKP = "Ex9E"
    SKNP = "ExA1"
    LD_VX_DT = "Fx07"
    LD_VX_K = "Fx0A"
    LD_DT_VX = "Fx15"
    LD_ST_VX = "Fx18"
    ADD_I = "Fx1E"
    LD_F = "Fx29"
    LD_B = "Fx33"
    LD_MEM_VX = "Fx55"
    LD_VX_MEM = "Fx65"
    UNKNOWN = "????"


class Operation(NamedTuple):
    """
    A decoded instruction word along with every operand field it could carry.  Which fields matter depends on the instruction.
    """
    instruction: Instruction
    word: int
    x: int
    y: int
    n: int
    kk: int
    nnn: int


# Instructions fully identified by their top nibble.
FAMILY_LOOKUP = {
    0x1: Instruction.JP,
    0x2: Instruction.CALL,
    0x3: Instruction.SE_BYTE,
    0x4: Instruction.SNE_BYTE,
    0x6: Instruction.LD_BYTE,
    0x7: Instruction.ADD_BYTE,
    0xA: Instruction.LD_I,
    0xB: Instruction.JP_V0,
    0xC: Instruction.RND,
    0xD: Instruction.DRW,
}

# Family 0x8, told apart by the low nibble.
ARITHMETIC_LOOKUP = {
    0x0: Instruction.LD_REG,
    0x1: Instruction.OR,
    0x2: Instruction.AND,
    0x3: Instruction.XOR,
    0x4: Instruction.ADD_REG,
    0x5: Instruction.SUB,
    0x6: Instruction.SHR,
    0x7: Instruction.SUBN,
    0xE: Instruction.SHL,
}

# Families 0xE and 0xF, told apart by the low byte.
KEY_TEST_LOOKUP = {
    0x9E: Instruction.SKP,
    0xA1: Instruction.SKNP,
}

MISC_LOOKUP = {
    0x07: Instruction.LD_VX_DT,
    0x0A: Instruction.LD_VX_K,
    0x15: Instruction.LD_DT_VX,
    0x18: Instruction.LD_ST_VX,
    0x1E: Instruction.ADD_I,
    0x29: Instruction.LD_F,
    0x33: Instruction.LD_B,
    0x55: Instruction.LD_MEM_VX,
    0x65: Instruction.LD_VX_MEM,
}


def get_instruction(word: int) -> Instruction:
    """
    Work out which instruction the given word encodes.
    :param word: The 16-bit instruction word.
    :return: The instruction, Instruction.UNKNOWN if the word is not part of the instruction set.
    """
    family = (word & FAMILY_MASK) >> 12
    low_nibble = word & NIBBLE_MASK
    low_byte = word & BYTE_MASK

    if word == CLEAR_SCREEN_OPCODE:
        return Instruction.CLS
    elif word == RETURN_FROM_SUBROUTINE_OPCODE:
        return Instruction.RET
    elif family == 0x0:
        return Instruction.SYS
    elif family in FAMILY_LOOKUP:
        return FAMILY_LOOKUP[family]
    elif family == 0x5 and low_nibble == 0:
        return Instruction.SE_REG
    elif family == 0x8:
        return ARITHMETIC_LOOKUP.get(low_nibble, Instruction.UNKNOWN)
    elif family == 0x9 and low_nibble == 0:
        return Instruction.SNE_REG
    elif family == 0xE:
        return KEY_TEST_LOOKUP.get(low_byte, Instruction.UNKNOWN)
    elif family == 0xF:
        return MISC_LOOKUP.get(low_byte, Instruction.UNKNOWN)
    return Instruction.UNKNOWN


def decode(word: int) -> Operation:
    """
    Decode a 16-bit instruction word.
    :param word: The word to decode, only the low 16 bits are considered.
    :return: The decoded operation.
    """
    word &= 0xFFFF
    return Operation(
        instruction=get_instruction(word),
        word=word,
        x=(word & X_MASK) >> 8,
        y=(word & Y_MASK) >> 4,
        n=word & NIBBLE_MASK,
        kk=word & BYTE_MASK,
        nnn=word & ADDRESS_MASK,
    )


def encode(operation: Operation) -> int:
    """
    Rebuild the instruction word from the instruction and its operand fields.
    :param operation: The operation to encode.
    :return: The 16-bit instruction word.
    """
    instruction = operation.instruction
    if instruction is Instruction.UNKNOWN:
        return operation.word

    pattern = instruction.value
    family = int(pattern[0], 16)
    if pattern[1:] in ("0E0", "0EE"):
        return int(pattern, 16)
    elif pattern[1:] == "nnn":
        return (family << 12) | operation.nnn
    elif pattern[2:] == "kk":
        return (family << 12) | (operation.x << 8) | operation.kk
    elif pattern[1:] == "xyn":
        return (family << 12) | (operation.x << 8) | (operation.y << 4) | operation.n
    elif pattern[1:3] == "xy":
        return (family << 12) | (operation.x << 8) | (operation.y << 4) | int(pattern[3], 16)
    return (family << 12) | (operation.x << 8) | int(pattern[2:], 16)


def disassemble(operation: Operation) -> str:
    """
    Render the operation in the conventional CHIP-8 assembly syntax.
    :param operation: The operation to render.
    :return: The mnemonic and operands, e.g. "ADD V0, V1".
    """
    x = f"V{operation.x:X}"
    y = f"V{operation.y:X}"
    kk = f"0x{operation.kk:02X}"
    nnn = f"0x{operation.nnn:03X}"

    mnemonics = {
        Instruction.SYS: f"SYS {nnn}",
        Instruction.CLS: "CLS",
        Instruction.RET: "RET",
        Instruction.JP: f"JP {nnn}",
        Instruction.CALL: f"CALL {nnn}",
        Instruction.SE_BYTE: f"SE {x}, {kk}",
        Instruction.SNE_BYTE: f"SNE {x}, {kk}",
        Instruction.SE_REG: f"SE {x}, {y}",
        Instruction.LD_BYTE: f"LD {x}, {kk}",
        Instruction.ADD_BYTE: f"ADD {x}, {kk}",
        Instruction.LD_REG: f"LD {x}, {y}",
        Instruction.OR: f"OR {x}, {y}",
        Instruction.AND: f"AND {x}, {y}",
        Instruction.XOR: f"XOR {x}, {y}",
        Instruction.ADD_REG: f"ADD {x}, {y}",
        Instruction.SUB: f"SUB {x}, {y}",
        Instruction.SHR: f"SHR {x}, {y}",
        Instruction.SUBN: f"SUBN {x}, {y}",
        Instruction.SHL: f"SHL {x}, {y}",
        Instruction.SNE_REG: f"SNE {x}, {y}",
        Instruction.LD_I: f"LD I, {nnn}",
        Instruction.JP_V0: f"JP V0, {nnn}",
        Instruction.RND: f"RND {x}, {kk}",
        Instruction.DRW: f"DRW {x}, {y}, {operation.n}",
        Instruction.SKP: f"SKP {x}",
        Instruction.SKNP: f"SKNP {x}",
        Instruction.LD_VX_DT: f"LD {x}, DT",
        Instruction.LD_VX_K: f"LD {x}, K",
        Instruction.LD_DT_VX: f"LD DT, {x}",
        Instruction.LD_ST_VX: f"LD ST, {x}",
        Instruction.ADD_I: f"ADD I, {x}",
        Instruction.LD_F: f"LD F, {x}",
        Instruction.LD_B: f"LD B, {x}",
        Instruction.LD_MEM_VX: f"LD [I], {x}",
        Instruction.LD_VX_MEM: f"LD {x}, [I]",
    }
    return mnemonics.get(operation.instruction, f"DW 0x{operation.word:04X}")

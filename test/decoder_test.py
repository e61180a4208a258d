import pytest

from chipvm.decoder import Instruction, Operation, decode, disassemble, encode


class TestDecode:
    @pytest.mark.parametrize("word, instruction", [
        (0x00E0, Instruction.CLS),
        (0x00EE, Instruction.RET),
        (0x0D52, Instruction.SYS),
        (0x0000, Instruction.SYS),
        (0x1ABC, Instruction.JP),
        (0x2ABC, Instruction.CALL),
        (0x3A12, Instruction.SE_BYTE),
        (0x4A12, Instruction.SNE_BYTE),
        (0x5AB0, Instruction.SE_REG),
        (0x6A12, Instruction.LD_BYTE),
        (0x7A12, Instruction.ADD_BYTE),
        (0x8AB0, Instruction.LD_REG),
        (0x8AB1, Instruction.OR),
        (0x8AB2, Instruction.AND),
        (0x8AB3, Instruction.XOR),
        (0x8AB4, Instruction.ADD_REG),
        (0x8AB5, Instruction.SUB),
        (0x8AB6, Instruction.SHR),
        (0x8AB7, Instruction.SUBN),
        (0x8ABE, Instruction.SHL),
        (0x9AB0, Instruction.SNE_REG),
        (0xAABC, Instruction.LD_I),
        (0xBABC, Instruction.JP_V0),
        (0xCA12, Instruction.RND),
        (0xDAB5, Instruction.DRW),
        (0xEA9E, Instruction.SKP),
        (0xEAA1, Instruction.SKNP),
        (0xFA07, Instruction.LD_VX_DT),
        (0xFA0A, Instruction.LD_VX_K),
        (0xFA15, Instruction.LD_DT_VX),
        (0xFA18, Instruction.LD_ST_VX),
        (0xFA1E, Instruction.ADD_I),
        (0xFA29, Instruction.LD_F),
        (0xFA33, Instruction.LD_B),
        (0xFA55, Instruction.LD_MEM_VX),
        (0xFA65, Instruction.LD_VX_MEM),
    ])
    def test_known_instructions(self, word, instruction):
        assert decode(word).instruction is instruction, f"{word:04x} decoded to the wrong instruction."

    @pytest.mark.parametrize("word", [0x5121, 0x800F, 0x8AB8, 0x9AB1, 0xE000, 0xEA9F, 0xF000, 0xFAFF, 0xF0A1])
    def test_unknown_instructions(self, word):
        operation = decode(word)
        assert operation.instruction is Instruction.UNKNOWN, f"{word:04x} should not decode to a known instruction."
        assert operation.word == word, "Unknown operation does not carry the raw word."

    def test_operand_fields(self):
        operation = decode(0xD123)
        assert operation == Operation(Instruction.DRW, 0xD123, 1, 2, 3, 0x23, 0x123), "Operand fields extracted incorrectly."

    def test_only_low_sixteen_bits_are_used(self):
        assert decode(0x1_00E0) == decode(0x00E0), "Bits above the word were not ignored."

    def test_every_word_decodes(self):
        instructions = {decode(word).instruction for word in range(0x10000)}
        assert instructions == set(Instruction), "Some instructions can never be produced by the decoder."


class TestEncode:
    @pytest.mark.parametrize("word", [0x00E0, 0x00EE, 0x0D52, 0x1ABC, 0x3A12, 0x5AB0, 0x8ABE, 0xDAB5, 0xEAA1, 0xFA0A, 0xFA65, 0x5121])
    def test_encode_rebuilds_word(self, word):
        assert encode(decode(word)) == word, f"{word:04x} was not rebuilt from its fields."

    def test_encode_every_known_word(self):
        for word in range(0x10000):
            operation = decode(word)
            if operation.instruction is not Instruction.UNKNOWN:
                assert encode(operation) == word, f"{word:04x} was not rebuilt from its fields."


class TestDisassemble:
    @pytest.mark.parametrize("word, text", [
        (0x00E0, "CLS"),
        (0x00EE, "RET"),
        (0x1228, "JP 0x228"),
        (0x3A12, "SE VA, 0x12"),
        (0x8014, "ADD V0, V1"),
        (0xA2F0, "LD I, 0x2F0"),
        (0xB300, "JP V0, 0x300"),
        (0xD015, "DRW V0, V1, 5"),
        (0xE39E, "SKP V3"),
        (0xF30A, "LD V3, K"),
        (0xF215, "LD DT, V2"),
        (0xF255, "LD [I], V2"),
        (0xF265, "LD V2, [I]"),
        (0x5121, "DW 0x5121"),
    ])
    def test_disassemble(self, word, text):
        assert disassemble(decode(word)) == text, f"{word:04x} disassembled incorrectly."

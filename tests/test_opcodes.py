import pytest

from lmc.opcodes import DEFAULT_TABLE, INSTRUCTION_DEFS, Arity, InstructionDef, InstructionTable, Opcode


@pytest.mark.parametrize(
    "value, mnemonic, operand",
    [
        (0, "HLT", 0),
        (105, "ADD", 5),
        (299, "SUB", 99),
        (342, "STA", 42),
        (500, "LDA", 0),
        (612, "BRA", 12),
        (713, "BRZ", 13),
        (899, "BRP", 99),
        (901, "INP", 0),
        (902, "OUT", 0),
        (922, "OTC", 0),
    ],
)
def test_decode_known_values(value, mnemonic, operand):
    defn, decoded_operand = DEFAULT_TABLE.decode(value)
    assert defn.mnemonic == mnemonic
    assert decoded_operand == operand


@pytest.mark.parametrize("value", [1, 42, 99, 400, 450, 900, 903, 921, 950, 999])
def test_decode_returns_none_for_undefined_values(value):
    assert DEFAULT_TABLE.decode(value) is None


def test_lookup_is_case_insensitive_and_knows_aliases():
    assert DEFAULT_TABLE.lookup("lda").opcode is Opcode.LDA
    assert DEFAULT_TABLE.lookup("sto").mnemonic == "STA"
    assert DEFAULT_TABLE.lookup("Br").mnemonic == "BRA"
    assert DEFAULT_TABLE.lookup("cob").mnemonic == "HLT"
    assert DEFAULT_TABLE.lookup("in").mnemonic == "INP"
    assert DEFAULT_TABLE.lookup("nope") is None


def test_dat_has_no_opcode():
    dat = DEFAULT_TABLE.lookup("DAT")
    assert dat.opcode is None
    assert dat.arity is Arity.OPTIONAL
    assert not dat.addresses_memory
    assert DEFAULT_TABLE.lookup("ADD").addresses_memory
    assert not DEFAULT_TABLE.lookup("OUT").addresses_memory


def test_table_lists_canonical_defs_and_every_name():
    assert len(DEFAULT_TABLE) == len(INSTRUCTION_DEFS)
    assert [defn.mnemonic for defn in DEFAULT_TABLE][:3] == ["HLT", "ADD", "SUB"]
    names = DEFAULT_TABLE.mnemonics()
    for name in ("HLT", "COB", "STA", "STO", "BRA", "BR", "INP", "IN", "DAT"):
        assert name in names


def test_by_opcode_ignores_unknown_values():
    assert DEFAULT_TABLE.by_opcode(300).mnemonic == "STA"
    assert DEFAULT_TABLE.by_opcode(400) is None


def test_duplicate_names_are_rejected():
    defs = INSTRUCTION_DEFS + (InstructionDef("ZAP", None, Arity.NONE, "Clash", aliases=("lda",)),)
    with pytest.raises(ValueError, match="Duplicate mnemonic: LDA"):
        InstructionTable(defs)


def test_duplicate_opcodes_are_rejected():
    defs = INSTRUCTION_DEFS + (InstructionDef("ZAP", Opcode.OUT, Arity.NONE, "Clash"),)
    with pytest.raises(ValueError, match="Duplicate opcode"):
        InstructionTable(defs)


def test_custom_table_can_drop_instructions():
    table = InstructionTable(defn for defn in INSTRUCTION_DEFS if defn.mnemonic != "OTC")
    assert table.decode(922) is None
    assert DEFAULT_TABLE.decode(922) is not None

"""
Test suite for batch file loading.
"""

import json

import pytest

from pycardano import PaymentSigningKey, TransactionOutput, UTxO

from smartsender.batchfile import BatchFileError, load_instruction_sets
from smartsender.tx.signer import generate_test_key


TX_HASH = "ab" * 32


@pytest.fixture
def owner():
    return generate_test_key().address


@pytest.fixture
def address() -> str:
    return generate_test_key().address_str


def write_batch(tmp_path, entries) -> str:
    path = tmp_path / "batch.json"
    path.write_text(json.dumps(entries))
    return str(path)


def spend(index: int = 0, lovelace: int = 5_000_000, **extra) -> dict:
    return {"ref": f"{TX_HASH}#{index}", "lovelace": lovelace, **extra}


class TestLoadInstructionSets:
    """Tests for reading batch files."""

    def test_load_inputs_outputs_and_signers(self, tmp_path, owner, address):
        keys_dir = tmp_path / "keys"
        keys_dir.mkdir()
        PaymentSigningKey.generate().save(str(keys_dir / "cosigner.skey"))

        path = write_batch(tmp_path, [
            {
                "inputs": [spend(0)],
                "outputs": [{"address": address, "lovelace": 2_000_000}],
                "signers": ["keys/cosigner.skey"],
            },
            {},
            {"inputs": [spend(1, 3_000_000)]},
        ])

        instruction_sets = load_instruction_sets(path, owner=owner)

        assert len(instruction_sets) == 3
        first, empty, last = instruction_sets

        assert isinstance(first.instructions[0], UTxO)
        assert first.instructions[0].input.index == 0
        assert first.instructions[0].output.amount.coin == 5_000_000
        assert first.instructions[0].output.address == owner
        assert isinstance(first.instructions[1], TransactionOutput)
        assert first.instructions[1].amount.coin == 2_000_000
        assert len(first.signers) == 1
        assert isinstance(first.signers[0], PaymentSigningKey)

        assert empty.is_empty is True
        assert last.instructions[0].input.index == 1
        assert last.instructions[0].output.amount.coin == 3_000_000
        assert last.signers == ()

    def test_input_address_overrides_owner(self, tmp_path, owner, address):
        path = write_batch(tmp_path, [{"inputs": [spend(0, address=address)]}])

        instruction_sets = load_instruction_sets(path, owner=owner)

        assert str(instruction_sets[0].instructions[0].output.address) == address

    def test_input_needs_address_or_owner(self, tmp_path):
        path = write_batch(tmp_path, [{"inputs": [spend(0)]}])

        with pytest.raises(BatchFileError, match="no address"):
            load_instruction_sets(path)

    def test_input_needs_lovelace(self, tmp_path, owner):
        path = write_batch(tmp_path, [{"inputs": [{"ref": f"{TX_HASH}#0"}]}])

        with pytest.raises(BatchFileError, match="Invalid batch file"):
            load_instruction_sets(path, owner=owner)

    def test_missing_file(self, tmp_path):
        with pytest.raises(BatchFileError, match="not found"):
            load_instruction_sets(str(tmp_path / "missing.json"))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "batch.json"
        path.write_text("[{")

        with pytest.raises(BatchFileError, match="Invalid batch file"):
            load_instruction_sets(str(path))

    def test_bad_input_reference(self, tmp_path, owner):
        path = write_batch(tmp_path, [{"inputs": [{"ref": "not-a-ref", "lovelace": 1}]}])

        with pytest.raises(BatchFileError, match="Invalid input reference"):
            load_instruction_sets(path, owner=owner)

    def test_negative_lovelace(self, tmp_path, owner, address):
        path = write_batch(tmp_path, [
            {"inputs": [spend(0)], "outputs": [{"address": address, "lovelace": -1}]},
        ])

        with pytest.raises(BatchFileError):
            load_instruction_sets(path, owner=owner)

    def test_missing_signer_key(self, tmp_path, owner):
        path = write_batch(tmp_path, [
            {"inputs": [spend(0)], "signers": ["keys/nobody.skey"]},
        ])

        with pytest.raises(BatchFileError, match="Signing key file not found"):
            load_instruction_sets(path, owner=owner)

    def test_bad_address(self, tmp_path, owner):
        path = write_batch(tmp_path, [
            {"inputs": [spend(0)], "outputs": [{"address": "addr_nonsense", "lovelace": 1}]},
        ])

        with pytest.raises(BatchFileError, match="Invalid batch file"):
            load_instruction_sets(path, owner=owner)

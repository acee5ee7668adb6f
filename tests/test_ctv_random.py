import pytest

from ctv_random import (
    GenProfile,
    IntRange,
    load_profile,
    make_rng,
    random_bytes_lt,
    random_range,
    random_spend_indices,
    random_tx,
)
from ctv_tx import MAX_MONEY, deserialize_tx, serialize_tx


def random_byte_total(tx):
    total = sum(len(o.script_pubkey) for o in tx.outputs)
    for i in tx.inputs:
        total += len(i.script_sig) + sum(len(w) for w in i.witness)
    return total


class TestRandomRange:
    def test_stays_in_range(self):
        rng = make_rng(1)
        r = IntRange(3, 7)
        seen = {random_range(rng, r) for _ in range(500)}
        assert seen <= set(range(3, 8))
        assert len(seen) > 1

    def test_single_value_range(self):
        assert random_range(make_rng(2), IntRange(5, 5)) == 5

    def test_invalid_range(self):
        with pytest.raises(ValueError):
            IntRange(4, 3)


class TestRandomBytes:
    def test_empty_when_budget_exhausted(self):
        assert random_bytes_lt(make_rng(0), IntRange(10, 10), 0) == (b"", 0)

    def test_length_capped_by_budget(self):
        rng = make_rng(3)
        for _ in range(200):
            data, left = random_bytes_lt(rng, IntRange(0, 520), 5)
            assert len(data) <= 5
            assert left == 5 - len(data)


class TestRandomTx:
    def test_seed_is_reproducible(self):
        a = serialize_tx(random_tx(make_rng(42)))
        b = serialize_tx(random_tx(make_rng(42)))
        assert a == b
        assert a != serialize_tx(random_tx(make_rng(43)))

    def test_field_bounds(self):
        rng = make_rng(7)
        profile = GenProfile()
        for _ in range(40):
            tx = random_tx(rng, profile)
            assert 1 <= len(tx.inputs) <= 129
            assert len(tx.outputs) <= 129
            assert all(0 <= o.value <= MAX_MONEY for o in tx.outputs)
            assert all(len(o.script_pubkey) <= 129 for o in tx.outputs)
            for txin in tx.inputs:
                assert len(txin.script_sig) <= 129
                assert len(txin.witness) <= 129
                assert all(len(item) <= 520 for item in txin.witness)
            assert random_byte_total(tx) <= 10_000

    def test_script_sigs_only_with_witness_flag(self):
        profile = GenProfile(
            input_count=IntRange(1, 1),
            witness_length=IntRange(1, 1),
            witness_item_length=IntRange(1, 1),
            script_sig_length=IntRange(5, 5),
            random_bytes_count=IntRange(10_000, 10_000),
        )
        rng = make_rng(11)
        flags = set()
        for _ in range(40):
            tx = random_tx(rng, profile)
            assert tx.has_script_sigs() == tx.has_witness()
            flags.add(tx.has_witness())
        assert flags == {True, False}

    def test_generated_transactions_round_trip(self):
        rng = make_rng(99)
        for _ in range(25):
            tx = random_tx(rng)
            assert serialize_tx(deserialize_tx(serialize_tx(tx))) == serialize_tx(tx)

    def test_small_profile(self):
        profile = GenProfile(
            input_count=IntRange(1, 1),
            output_count=IntRange(2, 2),
            random_bytes_count=IntRange(1000, 1000),
            script_pubkey_length=IntRange(0, 0),
            witness_length=IntRange(0, 0),
            script_sig_length=IntRange(0, 0),
        )
        tx = random_tx(make_rng(5), profile)
        assert len(tx.inputs) == 1
        assert len(tx.outputs) == 2
        assert all(o.script_pubkey == b"" for o in tx.outputs)


def test_spend_indices_shape():
    idx = random_spend_indices(make_rng(1))
    assert idx[:2] == [0, 1]
    assert len(idx) == 4
    assert all(0 <= i <= 0xFFFFFFFF for i in idx)


class TestProfile:
    def test_load_default_fixture(self, repo_root):
        profile = load_profile(repo_root / "conformance" / "fixtures" / "CV-CTVHASH-PROFILE.yml")
        assert profile == GenProfile()

    def test_partial_profile_keeps_defaults(self, tmp_path):
        path = tmp_path / "p.yml"
        path.write_text("ranges:\n  output_count: {min: 1, max: 2}\n", encoding="utf-8")
        profile = load_profile(path)
        assert profile.output_count == IntRange(1, 2)
        assert profile.input_count == IntRange(1, 129)

    def test_unknown_key(self, tmp_path):
        path = tmp_path / "p.yml"
        path.write_text("ranges:\n  bogus: [0, 1]\n", encoding="utf-8")
        with pytest.raises(ValueError, match="bogus"):
            load_profile(path)

    def test_gate_only_profile_uses_defaults(self, tmp_path):
        path = tmp_path / "p.yml"
        path.write_text("gate: CV-CTVHASH\n", encoding="utf-8")
        assert load_profile(path) == GenProfile()

    def test_flat_profile_with_gate(self, tmp_path):
        path = tmp_path / "p.yml"
        path.write_text("gate: CV-CTVHASH\noutput_count: [2, 3]\n", encoding="utf-8")
        assert load_profile(path).output_count == IntRange(2, 3)

    def test_wrong_gate(self, tmp_path):
        path = tmp_path / "p.yml"
        path.write_text("gate: CV-OTHER\nranges: {}\n", encoding="utf-8")
        with pytest.raises(ValueError, match="gate"):
            load_profile(path)

    def test_zero_inputs_rejected(self, tmp_path):
        path = tmp_path / "p.yml"
        path.write_text("ranges:\n  input_count: [0, 3]\n", encoding="utf-8")
        with pytest.raises(ValueError, match="input_count"):
            load_profile(path)

    def test_malformed_range(self, tmp_path):
        path = tmp_path / "p.yml"
        path.write_text("ranges:\n  output_count: 5\n", encoding="utf-8")
        with pytest.raises(ValueError, match="output_count"):
            load_profile(path)

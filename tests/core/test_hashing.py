from fission.core.hashing import hash_mapping, json_dumps_canonical


def test_json_dumps_canonical_sorted_and_ascii_policy() -> None:
    obj1 = {"b": 2, "a": 1, "nested": {"y": 2, "x": 1}, "denom": "µatom"}
    obj2 = {"nested": {"x": 1, "y": 2}, "a": 1, "denom": "µatom", "b": 2}
    s1 = json_dumps_canonical(obj1)
    assert s1 == json_dumps_canonical(obj2)
    assert "µatom" in s1
    assert " " not in s1


def test_hash_mapping_order_invariant_and_sensitive_to_values() -> None:
    a = {"tokens": [{"denom": "A", "multiplier": 1}], "excluded_addresses": ["x"]}
    b = {"excluded_addresses": ["x"], "tokens": [{"multiplier": 1, "denom": "A"}]}
    c = {"excluded_addresses": ["x"], "tokens": [{"multiplier": 2, "denom": "A"}]}
    assert hash_mapping(a) == hash_mapping(b)
    assert hash_mapping(a) != hash_mapping(c)
    assert len(hash_mapping(a)) == 64

from hash_utils import content_hash, hash_base36, hash_code


def test_empty_input_hashes_to_zero():
    assert hash_code('') == '0'
    assert hash_base36('') == '0'
    assert hash_code(None) == '0'


def test_known_values():
    # 'a' -> 97, 'ab' -> 97 * 31 + 98 = 3105
    assert hash_code('a') == '61'
    assert hash_base36('a') == '2p'
    assert hash_code('ab') == 'c21'
    assert hash_base36('ab') == '2e9'


def test_hash_is_deterministic_and_fits_32_bits():
    text = '\\sum_{i=0}^n x_i' * 50
    assert hash_code(text) == hash_code(text)
    assert int(hash_code(text), 16) < 2 ** 32
    assert int(hash_base36(text), 36) == int(hash_code(text), 16)


def test_distinct_formulas_get_distinct_fingerprints():
    assert hash_base36('x^2') != hash_base36('x^3')


def test_content_hash_covers_every_part():
    assert content_hash('doc', True) == content_hash('doc', True)
    assert content_hash('doc', True) != content_hash('doc', False)
    assert len(content_hash('doc')) == 32

"""
Unit tests for supervisord header parsing
"""

from tickthrottle.listener.tokens import parse_header, payload_length


class TestParseHeader:
    """Test parse_header()"""

    def test_real_supervisord_header(self):
        """Parses every pair of a real TICK header"""
        line = (
            "ver:3.0 server:supervisor serial:21 pool:listener "
            "poolserial:10 eventname:TICK_60 len:15"
        )
        headers = parse_header(line)

        assert headers == {
            'ver': '3.0',
            'server': 'supervisor',
            'serial': '21',
            'pool': 'listener',
            'poolserial': '10',
            'eventname': 'TICK_60',
            'len': '15',
        }

    def test_tokens_without_colon_are_skipped(self):
        """Garbage tokens are dropped, not an error"""
        headers = parse_header("garbage eventname:TICK_5 more-garbage")

        assert headers == {'eventname': 'TICK_5'}

    def test_splits_on_first_colon_only(self):
        """Value keeps any further colons"""
        headers = parse_header("when:12:30:00 eventname:TICK_5")

        assert headers['when'] == '12:30:00'

    def test_last_occurrence_wins(self):
        """Duplicate keys keep the last value"""
        headers = parse_header("eventname:TICK_5 eventname:PROCESS_STATE_RUNNING")

        assert headers == {'eventname': 'PROCESS_STATE_RUNNING'}

    def test_empty_key_is_skipped(self):
        """A token starting with a colon has no key"""
        headers = parse_header(":orphan eventname:TICK_5")

        assert headers == {'eventname': 'TICK_5'}

    def test_empty_value_is_kept(self):
        """key: with nothing after it maps to an empty string"""
        headers = parse_header("eventname: other:x")

        assert headers == {'eventname': '', 'other': 'x'}

    def test_empty_input(self):
        """Empty and whitespace-only lines give an empty mapping"""
        assert parse_header("") == {}
        assert parse_header("   ") == {}
        assert parse_header("\n") == {}

    def test_whitespace_around_key_and_value_is_trimmed(self):
        """Trailing newline and tabs do not end up in keys or values"""
        headers = parse_header("\teventname:TICK_5\n")

        assert headers == {'eventname': 'TICK_5'}

    def test_multiple_spaces_between_pairs(self):
        """Empty tokens from double spaces are ignored"""
        headers = parse_header("a:1  b:2")

        assert headers == {'a': '1', 'b': '2'}


class TestPayloadLength:
    """Test payload_length()"""

    def test_announced_length(self):
        assert payload_length({'len': '15'}) == 15

    def test_missing_len(self):
        assert payload_length({'eventname': 'TICK_5'}) == 0

    def test_invalid_len(self):
        """Non-numeric or negative lengths are treated as no payload"""
        assert payload_length({'len': 'abc'}) == 0
        assert payload_length({'len': '-3'}) == 0
        assert payload_length({'len': ''}) == 0

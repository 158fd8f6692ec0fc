"""Tests for GitHub ownership challenge codes."""

from mentortrust.verifiers.challenge import INSTRUCTIONS, ChallengeRegistry


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class TestChallengeRegistry:
    def test_issue_returns_code_and_expiry(self):
        registry = ChallengeRegistry(ttl_seconds=60, clock=FakeClock())
        challenge = registry.issue("mentor-1", "octocat")
        assert len(challenge.code) == 8
        assert challenge.expires_at == 1060.0

    def test_issue_with_known_code(self):
        registry = ChallengeRegistry(clock=FakeClock())
        assert registry.issue("mentor-1", "octocat", code="abc123").code == "abc123"
        assert registry.lookup("mentor-1", "octocat") == "abc123"

    def test_lookup_matches_normalized_handle(self):
        registry = ChallengeRegistry(clock=FakeClock())
        code = registry.issue("mentor-1", "octocat").code
        assert registry.lookup("mentor-1", "https://github.com/OctoCat") == code

    def test_lookup_other_handle(self):
        registry = ChallengeRegistry(clock=FakeClock())
        registry.issue("mentor-1", "octocat")
        assert registry.lookup("mentor-1", "hubot") is None

    def test_lookup_other_user(self):
        registry = ChallengeRegistry(clock=FakeClock())
        registry.issue("mentor-1", "octocat")
        assert registry.lookup("mentor-2", "octocat") is None

    def test_expired_code_dropped(self):
        clock = FakeClock()
        registry = ChallengeRegistry(ttl_seconds=60, clock=clock)
        registry.issue("mentor-1", "octocat")
        clock.now += 61
        assert registry.lookup("mentor-1", "octocat") is None
        assert registry.consume("mentor-1") is False

    def test_reissue_replaces_code(self):
        registry = ChallengeRegistry(clock=FakeClock())
        registry.issue("mentor-1", "octocat")
        second = registry.issue("mentor-1", "octocat")
        assert registry.lookup("mentor-1", "octocat") == second.code

    def test_consume(self):
        registry = ChallengeRegistry(clock=FakeClock())
        registry.issue("mentor-1", "octocat")
        assert registry.consume("mentor-1") is True
        assert registry.lookup("mentor-1", "octocat") is None

    def test_instructions_mention_all_locations(self):
        assert "verification-repo" in INSTRUCTIONS
        assert "gist" in INSTRUCTIONS
        assert "bio" in INSTRUCTIONS

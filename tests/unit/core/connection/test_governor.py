"""Unit tests for InstanceGovernor leader election."""

import pytest

from devlink.core.connection.governor import InstanceGovernor


@pytest.fixture
def lock_path(tmp_path):
    return tmp_path / "state" / "leader.lock"


class TestElection:

    def test_initial_state(self, lock_path):
        governor = InstanceGovernor(lock_path)

        assert governor.checked is False
        assert governor.is_leader is False

    @pytest.mark.asyncio
    async def test_single_instance_becomes_leader(self, lock_path):
        governor = InstanceGovernor(lock_path)

        assert await governor.elect() is True
        assert governor.checked is True
        assert governor.is_leader is True
        assert lock_path.parent.is_dir()

        governor.release()

    @pytest.mark.asyncio
    async def test_second_instance_is_not_leader(self, lock_path):
        first = InstanceGovernor(lock_path)
        second = InstanceGovernor(lock_path)

        assert await first.elect() is True
        assert await second.elect() is False

        assert second.checked is True
        assert second.is_leader is False

        first.release()

    @pytest.mark.asyncio
    async def test_leadership_passes_on_release(self, lock_path):
        first = InstanceGovernor(lock_path)
        second = InstanceGovernor(lock_path)
        await first.elect()
        await second.elect()

        first.release()

        assert first.is_leader is False
        assert await second.elect() is True

        second.release()

    @pytest.mark.asyncio
    async def test_re_elect_keeps_leadership(self, lock_path):
        governor = InstanceGovernor(lock_path)

        await governor.elect()
        assert await governor.elect() is True

        governor.release()

    def test_release_without_leadership_is_noop(self, lock_path):
        governor = InstanceGovernor(lock_path)

        governor.release()

        assert governor.is_leader is False

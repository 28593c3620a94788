from unittest.mock import MagicMock

import pytest

from mockdi import Mock, MockBehavior, MockError, MockRepository

from tests.fixtures import Clock, Repository, ServiceA, ServiceB


class TestMock:
    def test_object_matches_spec(self) -> None:
        mocked = Mock(ServiceA)

        assert isinstance(mocked.object, ServiceA)
        assert mocked.spec is ServiceA
        assert mocked.name == "ServiceA"
        assert mocked.behavior is MockBehavior.LOOSE

    def test_custom_name(self) -> None:
        assert Mock(ServiceA, name="primary").name == "primary"

    def test_behavior_from_string(self) -> None:
        assert Mock(ServiceA, behavior="strict").behavior is MockBehavior.STRICT

    def test_invalid_behavior(self) -> None:
        with pytest.raises(ValueError):
            Mock(ServiceA, behavior="lenient")

    def test_loose_returns_default(self) -> None:
        mocked = Mock(Repository)

        assert isinstance(mocked.object.get("key"), MagicMock)

    def test_strict_rejects_calls_without_setup(self) -> None:
        mocked = Mock(Repository, behavior=MockBehavior.STRICT)

        with pytest.raises(
            MockError, match=r"Repository.get\('key'\) invocation failed"
        ):
            mocked.object.get("key")

    def test_strict_mock_error_is_assertion_error(self) -> None:
        mocked = Mock(ServiceA, behavior=MockBehavior.STRICT)

        with pytest.raises(AssertionError):
            mocked.object.run_a()

    def test_strict_protocol(self) -> None:
        mocked = Mock(Clock, behavior=MockBehavior.STRICT)

        with pytest.raises(MockError):
            mocked.object.now()

        mocked.setup("now", return_value=1.5)

        assert mocked.object.now() == 1.5

    def test_setup_return_value(self) -> None:
        mocked = Mock(Repository, behavior=MockBehavior.STRICT)

        mocked.setup("get", return_value="value")

        assert mocked.object.get("key") == "value"

    def test_setup_side_effect(self) -> None:
        mocked = Mock(Repository, behavior=MockBehavior.STRICT)

        mocked.setup("get", side_effect=lambda key: key.upper())

        assert mocked.object.get("key") == "KEY"

    def test_setup_chaining(self) -> None:
        mocked = Mock(Repository)

        setup = mocked.setup("get").returns("value").verifiable()

        assert setup.is_verifiable
        assert setup.member == "get"
        assert setup.mock is mocked
        assert repr(setup) == "Repository.get()"
        assert mocked.object.get("key") == "value"

    def test_setup_raises(self) -> None:
        mocked = Mock(Repository)

        mocked.setup("get").raises(KeyError("key"))

        with pytest.raises(KeyError):
            mocked.object.get("key")

    def test_signature_is_checked(self) -> None:
        mocked = Mock(Repository)
        mocked.setup("get", return_value="value")

        with pytest.raises(TypeError):
            mocked.object.get()

    def test_setup_unknown_member(self) -> None:
        mocked = Mock(ServiceA)

        with pytest.raises(AttributeError, match="has no member `run_b`"):
            mocked.setup("run_b")

    def test_unknown_member_access(self) -> None:
        mocked = Mock(ServiceA)

        with pytest.raises(AttributeError):
            mocked.object.run_b()

    def test_setup_non_callable_member(self) -> None:
        mocked = Mock(Repository)

        with pytest.raises(TypeError, match="Use `setup_property`"):
            mocked.setup("name")

    def test_setup_property(self) -> None:
        mocked = Mock(Repository, behavior=MockBehavior.STRICT)

        mocked.setup_property("name", "custom")

        assert mocked.object.name == "custom"

    def test_invoked_counts_calls_after_setup(self) -> None:
        mocked = Mock(ServiceA)
        mocked.object.run_a()

        setup = mocked.setup("run_a")

        assert setup.invoked == 0
        mocked.object.run_a()
        mocked.object.run_a()
        assert setup.invoked == 2

    def test_verify_unmet_verifiable_setup(self) -> None:
        mocked = Mock(ServiceA)
        mocked.setup("run_a").verifiable()

        with pytest.raises(MockError, match=r"not matched:\n  ServiceA.run_a\(\)"):
            mocked.verify()

        mocked.object.run_a()
        mocked.verify()

    def test_verify_ignores_plain_setups(self) -> None:
        mocked = Mock(ServiceA)
        mocked.setup("run_a")

        mocked.verify()

        with pytest.raises(MockError):
            mocked.verify_all()

    def test_unmet_setups(self) -> None:
        mocked = Mock(Repository)
        get = mocked.setup("get")
        verifiable = mocked.setup("fetch").verifiable()

        assert mocked.unmet_setups() == [get, verifiable]
        assert mocked.unmet_setups(verifiable_only=True) == [verifiable]

    def test_reset(self) -> None:
        mocked = Mock(ServiceA, behavior=MockBehavior.STRICT)
        mocked.setup("run_a").verifiable()
        mocked.object.run_a()

        mocked.reset()

        assert mocked.setups == ()
        assert mocked.object.run_a.call_count == 0
        with pytest.raises(MockError):
            mocked.object.run_a()

    def test_repr(self) -> None:
        assert repr(Mock(ServiceA)) == "Mock[ServiceA](behavior=loose)"


@pytest.mark.anyio
async def test_async_member_setup() -> None:
    mocked = Mock(Repository, behavior=MockBehavior.STRICT)
    mocked.setup("fetch", return_value="value")

    assert await mocked.object.fetch("key") == "value"


@pytest.mark.anyio
async def test_async_member_strict() -> None:
    mocked = Mock(Repository, behavior=MockBehavior.STRICT)

    with pytest.raises(MockError, match="Repository.fetch"):
        await mocked.object.fetch("key")


class TestMockRepository:
    def test_create_uses_repository_behavior(self) -> None:
        repository = MockRepository(MockBehavior.STRICT)

        mocked = repository.create(ServiceA)

        assert mocked.behavior is MockBehavior.STRICT
        assert repository.mocks == (mocked,)

    def test_create_with_behavior(self) -> None:
        repository = MockRepository(MockBehavior.STRICT)

        mocked = repository.create(ServiceA, behavior=MockBehavior.LOOSE, name="a")

        assert mocked.behavior is MockBehavior.LOOSE
        assert mocked.name == "a"

    def test_verify_aggregates_mocks(self) -> None:
        repository = MockRepository()
        repository.create(ServiceA).setup("run_a").verifiable()
        repository.create(ServiceB).setup("run_b").verifiable()

        with pytest.raises(MockError) as exc_info:
            repository.verify()

        message = str(exc_info.value)
        assert "ServiceA.run_a()" in message
        assert "ServiceB.run_b()" in message

    def test_verify_all(self) -> None:
        repository = MockRepository()
        service_a = repository.create(ServiceA)
        service_a.setup("run_a")

        repository.verify()
        with pytest.raises(MockError, match=r"ServiceA.run_a\(\)"):
            repository.verify_all()

        service_a.object.run_a()
        repository.verify_all()

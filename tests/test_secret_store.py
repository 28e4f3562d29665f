import asyncio

import pytest

from totpvault.errors import DuplicateIdError, StoreError, ValidationError
from totpvault.io.backends import MemoryBackend
from totpvault.store.secret_store import Account, AccountInfo, SecretStore


def _account(account_id="a1", name="GitHub", secret=b"12345678901234567890"):
    return Account(id=account_id, name=name, secret=secret)


class AsyncBackend(MemoryBackend):
    async def list(self):
        await asyncio.sleep(0)
        return super().list()

    async def put(self, account):
        await asyncio.sleep(0)
        super().put(account)

    async def delete(self, account_id):
        await asyncio.sleep(0)
        super().delete(account_id)


class BrokenBackend(MemoryBackend):
    def put(self, account):
        raise OSError("disk full")

    def delete(self, account_id):
        raise OSError("read-only filesystem")


def test_add_and_get_all_preserves_insertion_order():
    store = SecretStore(MemoryBackend())

    async def scenario():
        for index, name in enumerate(["Zulu", "Alpha", "Mike"]):
            await store.add(_account(account_id=f"id{index}", name=name))
        return await store.get_all()

    accounts = asyncio.run(scenario())
    assert [account.name for account in accounts] == ["Zulu", "Alpha", "Mike"]


def test_store_accepts_awaitable_backend():
    store = SecretStore(AsyncBackend())

    async def scenario():
        await store.add(_account())
        assert await store.get("a1") is not None
        assert await store.remove("a1")
        return await store.get_all()

    assert asyncio.run(scenario()) == []


@pytest.mark.parametrize("name", ["", "   "])
def test_add_rejects_blank_name(name):
    store = SecretStore(MemoryBackend())
    with pytest.raises(ValidationError):
        asyncio.run(store.add(_account(name=name)))
    assert asyncio.run(store.get_all()) == []


def test_add_rejects_empty_secret():
    store = SecretStore(MemoryBackend())
    with pytest.raises(ValidationError):
        asyncio.run(store.add(_account(secret=b"")))


def test_add_rejects_duplicate_id():
    backend = MemoryBackend()
    store = SecretStore(backend)
    asyncio.run(store.add(_account(name="First")))
    with pytest.raises(DuplicateIdError) as excinfo:
        asyncio.run(store.add(_account(name="Second")))
    assert excinfo.value.account_id == "a1"
    assert [account.name for account in backend.list()] == ["First"]


def test_remove_missing_id_is_noop():
    store = SecretStore(MemoryBackend())
    asyncio.run(store.add(_account()))
    assert asyncio.run(store.remove("missing")) is False
    assert asyncio.run(store.remove("a1")) is True
    assert asyncio.run(store.remove("a1")) is False


def test_backend_failures_surface_as_store_error():
    backend = BrokenBackend()
    MemoryBackend.put(backend, _account())
    store = SecretStore(backend)
    with pytest.raises(StoreError):
        asyncio.run(store.add(_account(account_id="a2")))
    with pytest.raises(StoreError):
        asyncio.run(store.remove("a1"))
    assert [account.id for account in backend.list()] == ["a1"]


def test_account_repr_hides_secret():
    account = _account(secret=b"topsecretbytes")
    assert "topsecretbytes" not in repr(account)


def test_account_info_has_no_secret():
    info = AccountInfo.from_account(_account())
    assert not hasattr(info, "secret")
    assert info.name == "GitHub"
    assert (info.algorithm, info.digits, info.period) == ("SHA1", 6, 30)


def test_account_record_round_trip():
    account = Account(id="x", name="AWS", secret=b"\x00\x01\x02", algorithm="SHA256", digits=8, period=60)
    record = account.to_record()
    assert record["secret"] == "AAAQE==="
    assert Account.from_record(record) == account


class ExplodingBackend(MemoryBackend):
    def list(self):
        raise RuntimeError("connection pool closed")

    def put(self, account):
        raise RuntimeError("connection pool closed")


def test_any_backend_exception_surfaces_as_store_error():
    store = SecretStore(ExplodingBackend())
    with pytest.raises(StoreError):
        asyncio.run(store.get_all())
    with pytest.raises(StoreError):
        asyncio.run(store.remove("a1"))

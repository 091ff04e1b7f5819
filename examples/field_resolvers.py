import asyncio

from superloader import Failure, create_loader, setup_logging

INSTRUMENTS = {
    "i1": {"id": "i1", "issuer_id": "acme"},
    "i2": {"id": "i2", "issuer_id": "globex"},
    "i3": {"id": "i3", "issuer_id": "acme"},
}
ISSUERS = {"acme": {"id": "acme"}, "globex": {"id": "globex"}}


async def fetch_instruments(keys: list[str]) -> list:
    """Pretend to run one query for every instrument id of the window."""
    print(f"instrument query: {keys}")
    await asyncio.sleep(delay=0.01)
    return [INSTRUMENTS.get(key) or Failure(error=KeyError(key)) for key in keys]


def fetch_issuers(keys: list[str]) -> list:
    """Synchronous fetch functions work too."""
    print(f"issuer query: {keys}")
    return [ISSUERS[key] for key in keys]


async def main() -> None:
    """Resolve one field per transaction item, letting the loaders coalesce them."""
    instruments = create_loader(fetch_instruments, name="instruments", chunk_size=2)
    issuers = create_loader(fetch_issuers, name="issuers")

    async def resolve_issuer(instrument_id: str) -> dict:
        instrument = await instruments.load(instrument_id)
        return await issuers.load(instrument["issuer_id"])

    items = ["i1", "i2", "i3", "i1", "i2"]
    resolved = await asyncio.gather(*(resolve_issuer(item) for item in items))
    print(f"issuers: {[issuer['id'] for issuer in resolved]}")

    mixed = await instruments.load_many(["i1", "missing"])
    print(f"load_many with a missing id: {mixed}")


if __name__ == "__main__":
    setup_logging(level="INFO")
    asyncio.run(main())

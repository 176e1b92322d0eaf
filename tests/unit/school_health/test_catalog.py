"""Catalog provider: live data, fallback defaults and warnings."""

import pytest
from fakes import FakeCatalogSource

from school_health.domain.errors import ServiceUnavailableError
from school_health.services import CatalogProvider, CatalogWarning
from school_health.services.catalog import (
    DEFAULT_CHECKUP_TYPES,
    DEFAULT_VACCINES,
    FALLBACK_CATALOG_VERSION,
)


def _provider(source: FakeCatalogSource, **kwargs) -> CatalogProvider:
    return CatalogProvider(source, source, **kwargs)


class TestLiveCatalog:
    async def test_live_entries_are_served_and_cached(self) -> None:
        source = FakeCatalogSource()
        provider = _provider(source)

        first = await provider.vaccines()
        second = await provider.vaccines()

        assert [v.name for v in first] == ["MMR", "HPV"]
        assert second == first
        assert source.calls == 1
        assert not provider.degraded
        assert provider.warnings == []

    async def test_refresh_reloads_both_catalogs(self) -> None:
        source = FakeCatalogSource()
        provider = _provider(source)
        await provider.vaccines()

        await provider.refresh()

        assert source.calls == 3

    async def test_find_by_id_or_case_insensitive_name(self) -> None:
        provider = _provider(FakeCatalogSource())

        assert (await provider.find_vaccine(102)).name == "HPV"
        assert (await provider.find_vaccine(" mmr ")).vaccine_id == 101
        assert (await provider.find_vaccine("101")).name == "MMR"
        assert (await provider.find_checkup_type("dental examination")) is not None
        assert await provider.find_vaccine("Rabies") is None


class TestFallback:
    async def test_backend_failure_serves_defaults_with_warning(self) -> None:
        provider = _provider(FakeCatalogSource(error=ConnectionError("refused")))
        received: list[CatalogWarning] = []
        provider.add_listener(received.append)

        vaccines = await provider.vaccines()

        assert vaccines == list(DEFAULT_VACCINES)
        assert len(vaccines) == 8
        assert provider.using_fallback["vaccines"] is True
        assert provider.using_fallback["checkup_types"] is False
        assert provider.degraded

        warning = provider.warnings[0]
        assert warning.catalog == "vaccines"
        assert warning.message == "Using default vaccines list (API connection failed)"
        assert warning.fallback_version == FALLBACK_CATALOG_VERSION
        assert warning.cause == "refused"
        assert received == [warning]

    async def test_empty_backend_falls_back(self) -> None:
        provider = _provider(FakeCatalogSource(checkup_types=[]))

        types = await provider.checkup_types()

        assert len(types) == len(DEFAULT_CHECKUP_TYPES) == 10
        assert provider.warnings[0].message == (
            "Using default checkup types list (API connection failed)"
        )

    async def test_timeout_falls_back(self) -> None:
        provider = _provider(FakeCatalogSource(delay_seconds=0.5), timeout_seconds=0.05)

        vaccines = await provider.vaccines()

        assert vaccines == list(DEFAULT_VACCINES)
        assert "did not answer" in (provider.warnings[0].cause or "")

    async def test_fallback_is_not_cached(self) -> None:
        source = FakeCatalogSource(error=ConnectionError("refused"))
        provider = _provider(source)
        await provider.vaccines()

        source.error = None
        vaccines = await provider.vaccines()

        assert [v.name for v in vaccines] == ["MMR", "HPV"]
        assert provider.using_fallback["vaccines"] is False

    async def test_broken_listener_does_not_break_the_catalog(self) -> None:
        provider = _provider(FakeCatalogSource(error=ConnectionError("refused")))

        def explode(warning: CatalogWarning) -> None:
            raise RuntimeError("listener bug")

        provider.add_listener(explode)

        assert len(await provider.vaccines()) == 8

    async def test_disabled_fallback_raises(self) -> None:
        provider = _provider(
            FakeCatalogSource(error=ConnectionError("refused")), fallback_enabled=False
        )

        with pytest.raises(ServiceUnavailableError, match="vaccines catalog unavailable"):
            await provider.vaccines()
        assert provider.warnings == []

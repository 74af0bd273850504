"""Per-company tax settings lookup with explicit default handling."""

from uuid import UUID

from bizledger.domain.tax_settings import TaxSettingsProfile
from bizledger.domain.value_objects import ensure_company_id
from bizledger.exceptions import TaxSettingsMissingError
from bizledger.logging_config import get_logger
from bizledger.repositories.interfaces import TaxSettingsRepository

logger = get_logger(__name__)


class TaxSettingsProvider:
    def __init__(self, repository: TaxSettingsRepository) -> None:
        self._repository = repository

    def get(self, company_id: UUID | str) -> TaxSettingsProfile | None:
        return self._repository.get(ensure_company_id(company_id))

    def save(self, profile: TaxSettingsProfile) -> None:
        ensure_company_id(profile.company_id)
        self._repository.save(profile)

    def get_or_create_default(self, company_id: UUID | str) -> TaxSettingsProfile:
        """Stored profile, creating and storing the default one on first read."""
        company = ensure_company_id(company_id)
        profile = self._repository.get(company)
        if profile is None:
            profile = TaxSettingsProfile.default(company)
            self._repository.save(profile)
            logger.info("tax_settings_created", company_id=str(company))
        return profile

    def resolve(self, company_id: UUID | str, *, strict: bool = False) -> TaxSettingsProfile:
        """Profile for computation.

        With ``strict`` a missing profile raises ``TaxSettingsMissingError``.
        Otherwise the documented defaults are returned, unsaved, and the
        substitution is logged as a warning.
        """
        company = ensure_company_id(company_id)
        profile = self._repository.get(company)
        if profile is not None:
            return profile
        if strict:
            raise TaxSettingsMissingError(company)
        logger.warning(
            "tax_settings_defaulted",
            company_id=str(company),
            component="tax_settings_provider",
        )
        return TaxSettingsProfile.default(company)

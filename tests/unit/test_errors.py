import pytest

from asap_auth.auth.errors import (
    ConfigurationError,
    ErrorKind,
    ForbiddenError,
    InvalidSignatureOrClaimsError,
    KeyFetchFailureError,
    MissingKeyIdError,
    UnresolvableIssuerOrKeyIdError,
)


class TestAsapErrors:
    @pytest.mark.parametrize(
        "error_cls,kind",
        [
            (MissingKeyIdError, ErrorKind.MISSING_KEY_ID),
            (UnresolvableIssuerOrKeyIdError, ErrorKind.UNRESOLVABLE_ISSUER_OR_KEY_ID),
            (KeyFetchFailureError, ErrorKind.KEY_FETCH_FAILURE),
            (InvalidSignatureOrClaimsError, ErrorKind.INVALID_SIGNATURE_OR_CLAIMS),
        ],
    )
    def test_verification_errors_are_authorization_failures(self, error_cls, kind):
        error = error_cls()

        assert error.kind == kind
        assert error.is_authorization_failure

    @pytest.mark.parametrize("error_cls", [ForbiddenError, ConfigurationError])
    def test_other_errors_are_not_authorization_failures(self, error_cls):
        assert not error_cls().is_authorization_failure

    def test_str_carries_code(self):
        error = KeyFetchFailureError(details={"url": "https://k/x.pem"})

        assert str(error) == "[ASAP_003] error obtaining asap pub key"
        assert error.details == {"url": "https://k/x.pem"}

# ------------------------------------------------------------------------------------------------
# License
# ------------------------------------------------------------------------------------------------

# Copyright (c) 2025 LSeu-Open
#
# This code is licensed under the MIT License.
# See LICENSE file in the root directory

# ------------------------------------------------------------------------------------------------
# Description
# ------------------------------------------------------------------------------------------------

"""
Exception hierarchy for the trust scoring engine.

Ingestion-time errors (IntegrityError, SignatureError, OwnershipError,
SubmissionValidationError) are converted into structured rejections by the
ingestor. ScoringUnavailable never escapes a scorer. PolicyConfigError is
raised while building policies and registries.
"""


class TrustScoringError(Exception):
    """Base class for every error raised by the engine."""


class IntegrityError(TrustScoringError):
    """The claimed CID does not match the CID recomputed from the payload."""


class SignatureError(TrustScoringError):
    """A signature is invalid, or missing under a policy that requires one."""


class OwnershipError(TrustScoringError):
    """A chunk was appended to a merge series owned by another uploader."""


class SubmissionValidationError(TrustScoringError):
    """The submission envelope or payload does not have the expected shape."""


class ScoringUnavailable(TrustScoringError):
    """A scorer cannot judge a (prompt, response) pair."""


class PolicyConfigError(TrustScoringError):
    """Unknown algorithm version, decay shape, scorer identifier or knob value."""


class MissingCredentialError(TrustScoringError):
    """Signing was requested but no private key is configured."""


# Signing without a usable key is reported under either name.
InvalidKeyError = MissingCredentialError


class SimulationCancelled(TrustScoringError):
    """A simulation run observed its cancellation token."""

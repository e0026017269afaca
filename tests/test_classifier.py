import pytest
from netreconciler.core.errors import (
    ConflictError,
    FatalAPIError,
    NotFoundError,
    RetriesExhaustedError,
    TransientAPIError,
)
from netreconciler.execution.candidates import candidate_addresses
from netreconciler.execution.classifier import ErrorClass, classify, is_transient


class TestClassify:
    @pytest.mark.parametrize(
        "message",
        [
            "IP 10.0.0.7 is not a valid IP for the specified subnet",
            "(neutron)IP address 10.0.0.7 already allocated",
            "ADDRESS NOT VALID FOR SUBNET",
        ],
    )
    def test_fabric_contention_is_transient(self, message):
        assert classify(FatalAPIError(message)) is ErrorClass.TRANSIENT

    def test_signature_in_remote_error_text(self):
        error = FatalAPIError("Bad request", remote_error="is not a valid IP for the specified subnet")

        assert is_transient(error)

    def test_exhausted_transport_error_is_fatal(self):
        assert classify(TransientAPIError("HTTP 503: upstream unavailable")) is ErrorClass.FATAL

    def test_transport_error_carrying_signature_is_transient(self):
        error = TransientAPIError("HTTP 503", remote_error="address not valid for subnet")

        assert classify(error) is ErrorClass.TRANSIENT

    def test_not_found(self):
        assert classify(NotFoundError("gone")) is ErrorClass.NOT_FOUND

    def test_conflict(self):
        assert classify(ConflictError("already associated")) is ErrorClass.CONFLICT

    def test_everything_else_is_fatal(self):
        assert classify(FatalAPIError("quota exceeded")) is ErrorClass.FATAL
        assert classify(ValueError("boom")) is ErrorClass.FATAL

    def test_exhausted_retries_are_fatal(self):
        error = RetriesExhaustedError(
            "gave up", remote_error="is not a valid IP for the specified subnet"
        )

        assert classify(error) is ErrorClass.FATAL

    def test_extra_signatures(self):
        error = FatalAPIError("port allocation race")

        assert not is_transient(error)
        assert is_transient(error, ["allocation race"])


class TestCandidates:
    def test_offsets_from_network_base(self):
        assert candidate_addresses("192.168.1.0/24") == [
            "192.168.1.10",
            "192.168.1.20",
            "192.168.1.30",
            "192.168.1.40",
            "192.168.1.50",
        ]

    def test_host_bits_are_ignored(self):
        assert candidate_addresses("10.0.0.77/24")[0] == "10.0.0.10"

    def test_candidates_stay_inside_small_subnets(self):
        assert candidate_addresses("10.0.0.0/27") == ["10.0.0.10", "10.0.0.20", "10.0.0.30"]
        assert candidate_addresses("10.0.0.16/28") == ["10.0.0.26"]
        assert candidate_addresses("10.0.0.0/30") == []

    def test_broadcast_address_is_skipped(self):
        assert candidate_addresses("10.0.0.0/27", offsets=(31, 5)) == ["10.0.0.5"]

    def test_ipv6_and_garbage_yield_nothing(self):
        assert candidate_addresses("2001:db8::/64") == []
        assert candidate_addresses("not-a-network") == []

"""Tests for counter-row sequence allocation."""

from assessment_kernel.services.sequence_service import SequenceService


class TestSequenceService:

    def test_unused_sequence_has_no_value(self, session):
        assert SequenceService(session).current_value(SequenceService.AUDIT_LOG) is None

    def test_values_increase_by_one(self, session):
        sequences = SequenceService(session)

        issued = [sequences.next_value(SequenceService.AUDIT_LOG) for _ in range(3)]

        assert issued == [1, 2, 3]
        assert sequences.current_value(SequenceService.AUDIT_LOG) == 3

    def test_names_are_independent(self, session):
        sequences = SequenceService(session)
        sequences.next_value("audit_log")
        sequences.next_value("audit_log")

        assert sequences.next_value("frc_revision") == 1

    def test_rollback_returns_the_number(self, session):
        sequences = SequenceService(session)
        sequences.next_value(SequenceService.AUDIT_LOG)
        session.commit()
        sequences.next_value(SequenceService.AUDIT_LOG)

        session.rollback()

        assert sequences.next_value(SequenceService.AUDIT_LOG) == 2

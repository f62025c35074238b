"""Unit tests for the onboarding step evaluator."""
from __future__ import annotations

from itertools import product
import unittest

from workflow.onboarding import (
    OnboardingProgress,
    OnboardingStep,
    can_skip_to,
    clear_evaluation_cache,
    evaluate_onboarding,
    is_step_complete,
    next_step,
    previous_step,
    progress_percentage,
    step_from_query,
)


class EvaluateOnboardingTestCase(unittest.TestCase):
    """The first unmet requirement decides the current step."""

    def setUp(self) -> None:
        clear_evaluation_cache()

    def _expected_step(self, has_clinic: bool, has_subscription: bool, has_payment: bool) -> OnboardingStep:
        if not has_clinic:
            return OnboardingStep.CLINIC_INFO
        if not has_subscription:
            return OnboardingStep.SUBSCRIPTION
        if not has_payment:
            return OnboardingStep.PAYMENT
        return OnboardingStep.COMPLETE

    def test_every_flag_combination(self) -> None:
        for flags in product((False, True), repeat=3):
            with self.subTest(flags=flags):
                evaluation = evaluate_onboarding(OnboardingProgress.from_flags(*flags))
                expected = self._expected_step(*flags)
                self.assertIs(evaluation.current_step, expected)
                self.assertEqual(evaluation.is_valid, expected is OnboardingStep.COMPLETE)
                self.assertLessEqual(len(evaluation.missing_fields), 1)

    def test_missing_clinic_wins_regardless_of_later_flags(self) -> None:
        evaluation = evaluate_onboarding(OnboardingProgress.from_flags(False, True, True))

        self.assertIs(evaluation.current_step, OnboardingStep.CLINIC_INFO)
        self.assertEqual(evaluation.missing_fields, ("clinic",))
        self.assertFalse(evaluation.can_proceed)

    def test_later_steps_can_proceed(self) -> None:
        subscription = evaluate_onboarding(OnboardingProgress.from_flags(True, False, False))
        payment = evaluate_onboarding(OnboardingProgress.from_flags(True, True, False))

        self.assertEqual(subscription.missing_fields, ("subscription",))
        self.assertTrue(subscription.can_proceed)
        self.assertEqual(payment.missing_fields, ("payment",))
        self.assertTrue(payment.can_proceed)

    def test_flag_without_payload_is_not_satisfied(self) -> None:
        progress = OnboardingProgress(has_clinic=True, clinic_data=None)

        self.assertIs(evaluate_onboarding(progress).current_step, OnboardingStep.CLINIC_INFO)

    def test_cache_is_keyed_by_payload_content(self) -> None:
        filled = OnboardingProgress(has_clinic=True, clinic_data={"name": "Calm Mind"})
        self.assertIs(evaluate_onboarding(filled).current_step, OnboardingStep.SUBSCRIPTION)

        emptied = OnboardingProgress(has_clinic=True, clinic_data={})
        self.assertIs(evaluate_onboarding(emptied).current_step, OnboardingStep.CLINIC_INFO)

        renamed = OnboardingProgress(has_clinic=True, clinic_data={"name": "Deep Rest"})
        self.assertIs(evaluate_onboarding(renamed).current_step, OnboardingStep.SUBSCRIPTION)

    def test_payload_with_mixed_key_types_is_evaluated(self) -> None:
        progress = OnboardingProgress(
            has_clinic=True, clinic_data={1: "a", "name": "b"}
        )

        evaluation = evaluate_onboarding(progress)

        self.assertIs(evaluation.current_step, OnboardingStep.SUBSCRIPTION)
        self.assertIs(evaluate_onboarding(progress), evaluation)

    def test_to_dict_uses_wire_values(self) -> None:
        payload = evaluate_onboarding(OnboardingProgress.from_flags(True, False, False)).to_dict()

        self.assertEqual(
            payload,
            {
                "current_step": "subscription",
                "missing_fields": ["subscription"],
                "can_proceed": True,
                "is_valid": False,
            },
        )


class StepNavigationTestCase(unittest.TestCase):
    """Helpers for moving between onboarding steps."""

    def test_next_and_previous(self) -> None:
        self.assertIs(next_step(OnboardingStep.CLINIC_INFO), OnboardingStep.SUBSCRIPTION)
        self.assertIs(next_step(OnboardingStep.PAYMENT), OnboardingStep.COMPLETE)
        self.assertIsNone(next_step(OnboardingStep.COMPLETE))
        self.assertIs(previous_step(OnboardingStep.SUBSCRIPTION), OnboardingStep.CLINIC_INFO)
        self.assertIsNone(previous_step(OnboardingStep.CLINIC_INFO))

    def test_can_skip_to_requires_every_earlier_step(self) -> None:
        progress = OnboardingProgress.from_flags(True, False, False)

        self.assertTrue(can_skip_to(OnboardingStep.CLINIC_INFO, progress))
        self.assertTrue(can_skip_to(OnboardingStep.SUBSCRIPTION, progress))
        self.assertFalse(can_skip_to(OnboardingStep.PAYMENT, progress))
        self.assertFalse(can_skip_to(OnboardingStep.COMPLETE, progress))

    def test_complete_step_needs_all_prior_steps(self) -> None:
        self.assertTrue(
            is_step_complete(OnboardingStep.COMPLETE, OnboardingProgress.from_flags(True, True, True))
        )
        self.assertFalse(
            is_step_complete(OnboardingStep.COMPLETE, OnboardingProgress.from_flags(True, False, True))
        )

    def test_progress_percentage(self) -> None:
        self.assertEqual(progress_percentage(OnboardingProgress()), 0)
        self.assertAlmostEqual(
            progress_percentage(OnboardingProgress.from_flags(True, True, False)), 200 / 3
        )
        self.assertEqual(progress_percentage(OnboardingProgress.from_flags(True, True, True)), 100)

    def test_step_from_query(self) -> None:
        self.assertIs(step_from_query("payment"), OnboardingStep.PAYMENT)
        self.assertIs(step_from_query(" Complete "), OnboardingStep.COMPLETE)
        self.assertIsNone(step_from_query("billing"))
        self.assertIsNone(step_from_query(None))


if __name__ == "__main__":
    unittest.main()

"""Tests for answer accumulation."""

from schemas.form_definitions import (
    AcademicDetails,
    AnswerSet,
    CounsellingSelection,
    ExtendedNurtureAnswers,
    MastersAcademicDetails,
    PersonalDetails,
)

from conftest import academic_details, masters_details, personal_details


def regular_answers() -> AnswerSet:
    answers = AnswerSet().merged(PersonalDetails(**personal_details(current_grade="12")))
    answers = answers.merged(AcademicDetails(**academic_details()))
    answers = answers.merged(ExtendedNurtureAnswers(
        strong_profile_intent="yes", partial_funding_approach="accept_loans",
    ))
    return answers.merged(CounsellingSelection(selected_date="2026-11-02", selected_slot="10:00 AM"))


class TestAnswerSetMerge:

    def test_fragments_accumulate(self):
        answers = regular_answers()

        assert answers.email == "priya@example.com"
        assert answers.school_name == "Greenwood High"
        assert answers.extended_nurture.partial_funding_approach == "accept_loans"
        assert answers.counselling.slot_picked

    def test_step_two_discards_later_answers(self):
        answers = regular_answers().merged(
            AcademicDetails(**academic_details(scholarship_requirement="partial_scholarship"))
        )

        assert answers.scholarship_requirement.value == "partial_scholarship"
        assert answers.extended_nurture is None
        assert answers.counselling is None
        assert answers.email == "priya@example.com"

    def test_step_two_discards_other_track(self):
        answers = regular_answers().merged(MastersAcademicDetails(**masters_details()))

        assert answers.intake == "jan_aug_2026"
        assert answers.curriculum_type is None
        assert answers.target_university_rank is None
        assert answers.preferred_countries is None
        assert answers.school_name == "IIT Madras"

    def test_track_switch_on_step_one_discards_step_two(self):
        answers = regular_answers().merged(PersonalDetails(**personal_details(current_grade="masters")))

        assert answers.is_masters
        assert answers.school_name is None
        assert answers.curriculum_type is None
        assert answers.extended_nurture is None
        dumped = answers.model_dump(by_alias=True, exclude_none=True)
        assert "curriculumType" not in dumped
        assert "preferredCountries" not in dumped

    def test_same_track_step_one_keeps_step_two(self):
        answers = regular_answers().merged(
            PersonalDetails(**personal_details(current_grade="11", email="new@example.com"))
        )

        assert answers.email == "new@example.com"
        assert answers.school_name == "Greenwood High"

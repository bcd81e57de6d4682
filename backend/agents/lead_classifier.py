"""
Lead Classifier
===============
Maps an accumulated answer set to exactly one LeadCategory.

Rules are evaluated in a fixed order and the first match wins:

1. Grade 7 or below                       -> drop
2. Extended nurture answers present       -> re-categorize from those only
3. Full scholarship required              -> nurture
4. Masters track                          -> masters-l1 / masters-l2 / nurture
5. BCH                                    -> bch
6. Luminaire gate (grade 11/12)           -> lum-l1 / lum-l2
7. Anything else                          -> nurture

The classifier is total: unmatched combinations land in nurture rather
than raising, so no lead is ever lost to an unexpected answer mix.
"""

from typing import Optional

from schemas.form_definitions import (
    AnswerSet,
    CurrentGrade,
    ExtendedNurtureAnswers,
    FormFillerType,
    LeadCategory,
    ParentFundingApproach,
    ParentalSupport,
    QUALIFIED_CATEGORIES,
    ScholarshipRequirement,
    StudentFundingApproach,
    TargetUniversities,
    ApplicationPreparation,
    TargetUniversityRank,
)


EARLY_GRADES = {CurrentGrade.GRADE_9, CurrentGrade.GRADE_10}
SENIOR_GRADES = {CurrentGrade.GRADE_11, CurrentGrade.GRADE_12}

FUNDED_SCHOLARSHIP_NEEDS = {
    ScholarshipRequirement.SCHOLARSHIP_OPTIONAL,
    ScholarshipRequirement.PARTIAL_SCHOLARSHIP,
}

ACTIVE_MASTERS_PREPARATION = {
    ApplicationPreparation.RESEARCHING_NOW,
    ApplicationPreparation.TAKEN_EXAMS_IDENTIFIED_UNIVERSITIES,
}

MASTERS_TARGET_CATEGORIES = {
    TargetUniversities.TOP_20_50: LeadCategory.MASTERS_L1,
    TargetUniversities.TOP_50_100: LeadCategory.MASTERS_L2,
    TargetUniversities.PARTNER_UNIVERSITY: LeadCategory.MASTERS_L2,
    TargetUniversities.UNSURE: LeadCategory.NURTURE,
}

PARENT_FUNDING_CATEGORIES = {
    ParentFundingApproach.ACCEPT_LOANS.value: LeadCategory.LUM_L1,
    ParentFundingApproach.AFFORDABLE_ALTERNATIVES.value: LeadCategory.LUM_L2,
}


# =========================================================================
# HELPERS
# =========================================================================

def _is_parent_or_international_student(answers: AnswerSet) -> bool:
    if answers.form_filler_type == FormFillerType.PARENT:
        return True
    return (
        answers.form_filler_type == FormFillerType.STUDENT
        and answers.has_international_curriculum
    )


def _is_grade_11_top_20(answers: AnswerSet) -> bool:
    return (
        answers.current_grade == CurrentGrade.GRADE_11
        and answers.target_university_rank == TargetUniversityRank.TOP_20
    )


def _parse_score(raw: Optional[str]) -> Optional[float]:
    if raw is None:
        return None
    try:
        return float(str(raw).strip())
    except ValueError:
        return None


def looks_like_spam(answers: AnswerSet) -> bool:
    """
    Perfect scores are overwhelmingly junk submissions.

    A GPA of exactly 10/10 or a percentage of exactly 100 flags the lead.
    """
    return _parse_score(answers.gpa_value) == 10.0 or _parse_score(answers.percentage_value) == 100.0


def is_qualified(category: Optional[LeadCategory]) -> bool:
    """Qualified leads get the counselling step and the qualified-lead event."""
    return category in QUALIFIED_CATEGORIES


# =========================================================================
# RULES
# =========================================================================

def _recategorize_parent(extended: ExtendedNurtureAnswers) -> LeadCategory:
    return PARENT_FUNDING_CATEGORIES.get(extended.partial_funding_approach, LeadCategory.NURTURE)


def _recategorize_student(answers: AnswerSet, extended: ExtendedNurtureAnswers) -> LeadCategory:
    if extended.parental_support != ParentalSupport.WOULD_JOIN:
        return LeadCategory.NURTURE

    approach = extended.partial_funding_approach

    if approach == StudentFundingApproach.ACCEPT_COVER_REMAINING.value:
        if answers.current_grade in EARLY_GRADES:
            return LeadCategory.BCH
        if _is_grade_11_top_20(answers) and answers.has_international_curriculum:
            return LeadCategory.BCH
        if answers.current_grade in SENIOR_GRADES and answers.has_international_curriculum:
            return LeadCategory.LUM_L1
        return LeadCategory.NURTURE

    if approach == StudentFundingApproach.DEFER_EXTERNAL_SCHOLARSHIPS.value:
        return LeadCategory.LUM_L2

    return LeadCategory.NURTURE


def _recategorize_extended(answers: AnswerSet) -> LeadCategory:
    extended = answers.extended_nurture
    if answers.form_filler_type == FormFillerType.PARENT:
        return _recategorize_parent(extended)
    if answers.form_filler_type == FormFillerType.STUDENT:
        return _recategorize_student(answers, extended)
    return LeadCategory.NURTURE


def _classify_masters(answers: AnswerSet) -> LeadCategory:
    preparation = answers.application_preparation

    if preparation == ApplicationPreparation.UNDECIDED_NEED_HELP:
        return LeadCategory.NURTURE

    if preparation in ACTIVE_MASTERS_PREPARATION:
        return MASTERS_TARGET_CATEGORIES.get(answers.target_universities, LeadCategory.NURTURE)

    return LeadCategory.NURTURE


def _is_bch(answers: AnswerSet) -> bool:
    if answers.scholarship_requirement not in FUNDED_SCHOLARSHIP_NEEDS:
        return False

    # Case 1: grade 9/10, parent-filled
    if answers.current_grade in EARLY_GRADES and answers.form_filler_type == FormFillerType.PARENT:
        return True

    # Case 2: grade 11 aiming for the top 20
    return _is_grade_11_top_20(answers) and _is_parent_or_international_student(answers)


def _classify_luminaire(answers: AnswerSet) -> Optional[LeadCategory]:
    if answers.current_grade not in SENIOR_GRADES:
        return None
    if not _is_parent_or_international_student(answers):
        return None

    # Grade 11 + top 20 with optional scholarship was already claimed by BCH.
    if answers.scholarship_requirement == ScholarshipRequirement.SCHOLARSHIP_OPTIONAL:
        return LeadCategory.LUM_L1
    if answers.scholarship_requirement == ScholarshipRequirement.PARTIAL_SCHOLARSHIP:
        return LeadCategory.LUM_L2
    return None


# =========================================================================
# ENTRY POINT
# =========================================================================

def classify(answers: AnswerSet) -> LeadCategory:
    """
    Determine the lead category for an answer set.

    Pure and deterministic: the same answers always yield the same
    category, and nothing outside the answer set is consulted.
    """
    if answers.current_grade == CurrentGrade.GRADE_7_BELOW:
        return LeadCategory.DROP

    if answers.extended_nurture is not None:
        return _recategorize_extended(answers)

    if answers.scholarship_requirement == ScholarshipRequirement.FULL_SCHOLARSHIP:
        return LeadCategory.NURTURE

    if answers.current_grade == CurrentGrade.MASTERS:
        return _classify_masters(answers)

    if _is_bch(answers):
        return LeadCategory.BCH

    luminaire = _classify_luminaire(answers)
    if luminaire is not None:
        return luminaire

    return LeadCategory.NURTURE


__all__ = [
    "classify",
    "is_qualified",
    "looks_like_spam",
]

"""
Intent Scoring Table

Each intent category is one declarative rule: keywords with a per-keyword
increment, bonuses for related entity types, an emission threshold, an
optional related-entity shortcut, and sub-intent patterns. Adding a
category means adding a rule, not touching control flow.
"""

import re
from dataclasses import dataclass
from typing import FrozenSet, Optional, Set, Tuple

from .analysis import DetectedIntent, EntityType, IntentCategory

MAX_INTENT_SCORE = 0.95
GENERAL_QUESTION_CONFIDENCE = 0.3

DATE_TYPES = frozenset({EntityType.DATE, EntityType.TIME_PERIOD})


@dataclass(frozen=True)
class Shortcut:
    """Emit the intent below threshold when a related entity is present"""
    requires_any: FrozenSet[EntityType]
    phrase: Optional[str] = None  # must also appear in the query
    min_score: Optional[float] = None  # score must also exceed this

    def applies(self, query: str, present: Set[EntityType], score: float) -> bool:
        if not self.requires_any & present:
            return False
        if self.phrase is not None and self.phrase not in query:
            return False
        if self.min_score is not None and not score > self.min_score:
            return False
        return True


@dataclass(frozen=True)
class IntentRule:
    """Scoring rule for one intent category"""
    category: IntentCategory
    keywords: Tuple[str, ...]
    keyword_weight: float
    entity_bonuses: Tuple[Tuple[FrozenSet[EntityType], float], ...] = ()
    threshold: float = 0.3
    shortcut: Optional[Shortcut] = None
    sub_intents: Tuple[Tuple[str, str], ...] = ()

    def score(self, query: str, present: Set[EntityType]) -> float:
        score = 0.0
        for keyword in self.keywords:
            if keyword in query:
                score += self.keyword_weight
        for types, bonus in self.entity_bonuses:
            if types & present:
                score += bonus
        return min(MAX_INTENT_SCORE, score)

    def detect_sub_intents(self, query: str) -> Tuple[str, ...]:
        return tuple(name for name, pattern in self.sub_intents if re.search(pattern, query))

    def evaluate(self, query: str, present: Set[EntityType]) -> Optional[DetectedIntent]:
        """
        Score the (lower-cased) query.

        Returns:
            DetectedIntent if the score clears the threshold or the shortcut applies
        """
        score = self.score(query, present)
        if score > self.threshold or (self.shortcut and self.shortcut.applies(query, present, score)):
            return DetectedIntent(
                category=self.category,
                confidence=score,
                sub_intents=self.detect_sub_intents(query),
                requires_data=True,
            )
        return None


def _types(*types: EntityType) -> FrozenSet[EntityType]:
    return frozenset(types)


INTENT_RULES: Tuple[IntentRule, ...] = (
    IntentRule(
        category=IntentCategory.EMPLOYEE_INFO,
        keywords=(
            "who is", "about", "profile", "contact", "information", "details",
            "email", "phone", "skills", "experience", "role", "position",
            "manager", "reports to", "works for", "team", "start date", "tenure",
        ),
        keyword_weight=0.15,
        entity_bonuses=((_types(EntityType.EMPLOYEE), 0.4),),
        shortcut=Shortcut(_types(EntityType.EMPLOYEE), min_score=0.1),
        sub_intents=(
            ("contact_info", r"contact|email|phone|reach"),
            ("skills_info", r"skill|expertise|know|able|capable"),
            ("role_info", r"role|position|job|title|responsibility"),
            ("team_info", r"team|department|group|division"),
            ("manager_info", r"manager|report|supervisor"),
            ("employment_info", r"start|hire|join|tenure"),
        ),
    ),
    IntentRule(
        category=IntentCategory.SCHEDULE_MANAGEMENT,
        keywords=(
            "schedule", "shift", "shifts", "working", "hours", "time off", "pto",
            "vacation", "leave", "availability", "work days", "calendar", "roster",
            "on duty", "sick leave", "absent", "coverage",
        ),
        keyword_weight=0.15,
        entity_bonuses=(
            (_types(EntityType.EMPLOYEE), 0.2),
            (DATE_TYPES, 0.3),
        ),
        shortcut=Shortcut(DATE_TYPES, min_score=0.2),
        sub_intents=(
            ("view_schedule", r"view|show|see|get|what|display"),
            ("time_off_management", r"time off|pto|vacation|leave|sick"),
            ("modify_schedule", r"change|update|modify|edit|adjust"),
            ("create_schedule", r"assign|set|create|new"),
            ("approve_schedule", r"approve|review|request"),
            ("coverage_planning", r"coverage|available|capacity|resource"),
        ),
    ),
    IntentRule(
        category=IntentCategory.TASK_MANAGEMENT,
        keywords=(
            "task", "tasks", "to do", "todo", "assignment", "action item",
            "deliverable", "due", "deadline", "pending", "complete", "status",
            "progress", "assigned", "overdue", "priority", "backlog",
        ),
        keyword_weight=0.2,
        entity_bonuses=(
            (_types(EntityType.EMPLOYEE), 0.2),
            (DATE_TYPES, 0.1),
        ),
        sub_intents=(
            ("view_tasks", r"view|show|see|get|what|display|list"),
            ("assign_task", r"assign|give|set|create|new|add"),
            ("update_task", r"update|change|modify|edit"),
            ("complete_task", r"complete|done|finish|mark|check off"),
            ("task_status", r"status|progress|update"),
            ("task_deadlines", r"due|deadline|overdue|late"),
            ("task_priority", r"priority|important|urgent"),
        ),
    ),
    IntentRule(
        category=IntentCategory.RECOGNITION,
        keywords=(
            "recognize", "recognition", "acknowledge", "praise", "compliment",
            "appreciate", "appreciation", "thank", "thanks", "reward", "achievement",
            "celebrate", "celebration", "milestone", "kudos", "shoutout", "highlight",
        ),
        keyword_weight=0.2,
        entity_bonuses=((_types(EntityType.EMPLOYEE), 0.3),),
        shortcut=Shortcut(_types(EntityType.EMPLOYEE), phrase="good job"),
        sub_intents=(
            ("create_recognition", r"create|new|add|give|send|make"),
            ("view_recognitions", r"view|show|see|get|display|list|history"),
            ("recognition_options", r"option|type|way|method|how"),
            ("team_recognition", r"team|group|department|all"),
            ("milestone_recognition", r"milestone|anniversary|birthday|year"),
            ("reward_recognition", r"points|reward|gift|bonus|incentive"),
        ),
    ),
    IntentRule(
        category=IntentCategory.JOB_MANAGEMENT,
        keywords=(
            "job", "position", "opening", "requisition", "req", "vacancy",
            "hiring", "role", "posting", "description", "jd", "listing",
            "open position", "requirements", "qualifications", "salary",
        ),
        keyword_weight=0.15,
        entity_bonuses=(
            (_types(EntityType.JOB), 0.4),
            (_types(EntityType.DEPARTMENT), 0.1),
        ),
        shortcut=Shortcut(_types(EntityType.JOB)),
        sub_intents=(
            ("view_jobs", r"view|show|see|get|display|list|open|available"),
            ("create_job", r"create|new|add|open|post|draft"),
            ("update_job", r"update|change|modify|edit|revise"),
            ("close_job", r"close|remove|archive|cancel|delete"),
            ("job_status", r"status|progress|applicants|candidates"),
            ("job_details", r"description|details|requirements|qualifications"),
            ("job_compensation", r"salary|compensation|pay|range|budget"),
        ),
    ),
    IntentRule(
        category=IntentCategory.CANDIDATE_MANAGEMENT,
        keywords=(
            "candidate", "applicant", "resume", "cv", "application",
            "profile", "pipeline", "talent", "qualified", "screening",
            "shortlist", "recruit", "background", "experience",
        ),
        keyword_weight=0.2,
        entity_bonuses=(
            (_types(EntityType.CANDIDATE), 0.4),
            (_types(EntityType.JOB), 0.2),
        ),
        shortcut=Shortcut(_types(EntityType.CANDIDATE)),
        sub_intents=(
            ("view_candidates", r"view|show|see|get|display|list|all"),
            ("add_candidate", r"add|new|create|track"),
            ("update_candidate", r"update|change|modify|edit|status"),
            ("candidate_details", r"profile|detail|background|experience|qualification|skill"),
            ("candidate_status", r"status|stage|progress|pipeline"),
            ("candidate_documents", r"resume|cv|attachment|document"),
        ),
    ),
    IntentRule(
        category=IntentCategory.INTERVIEW_PROCESS,
        keywords=(
            "interview", "interviewing", "panel", "feedback", "assessment",
            "evaluation", "rating", "score", "meeting", "screen", "phone screen",
            "technical", "onsite", "schedule", "debrief", "decision",
        ),
        keyword_weight=0.15,
        entity_bonuses=(
            (_types(EntityType.CANDIDATE), 0.3),
            (_types(EntityType.EMPLOYEE), 0.1),
            (DATE_TYPES, 0.1),
        ),
        shortcut=Shortcut(_types(EntityType.CANDIDATE, EntityType.EMPLOYEE), phrase="interview"),
        sub_intents=(
            ("schedule_interview", r"schedule|set up|arrange|plan|book|calendar"),
            ("interview_feedback", r"feedback|review|assessment|evaluation|score|rating"),
            ("interview_preparation", r"prepare|preparation|question|guide|template"),
            ("interview_panel", r"panel|team|group|who|interviewer"),
            ("upcoming_interviews", r"upcoming|next|scheduled|pending"),
            ("modify_interview", r"cancel|reschedule|change|move"),
        ),
    ),
    IntentRule(
        category=IntentCategory.HIRING_WORKFLOW,
        keywords=(
            "offer", "hire", "hiring", "onboarding", "decision", "approve",
            "reject", "decline", "compensation", "salary", "negotiate",
            "start date", "background check", "reference", "paperwork",
        ),
        keyword_weight=0.15,
        entity_bonuses=(
            (_types(EntityType.CANDIDATE), 0.3),
            (_types(EntityType.JOB), 0.2),
        ),
        shortcut=Shortcut(_types(EntityType.CANDIDATE), phrase="offer"),
        sub_intents=(
            ("create_offer", r"offer|extend|proposal|package|comp|salary"),
            ("approve_offer", r"approve|authorize|review|sign off"),
            ("offer_status", r"status|update|accepted|declined|pending"),
            ("onboarding", r"onboarding|first day|start|orientation|welcome"),
            ("reject_candidate", r"reject|decline|pass|not moving forward"),
            ("hiring_documents", r"paperwork|documents|forms|signature|e-sign"),
            ("background_check", r"background|reference|check|verification"),
        ),
    ),
)


def general_question() -> DetectedIntent:
    """Fallback intent appended to every analysis"""
    return DetectedIntent(
        category=IntentCategory.GENERAL_QUESTION,
        confidence=GENERAL_QUESTION_CONFIDENCE,
        requires_data=False,
    )

"""
Panel Interview Prompt Templates

Prompts for the three panel oracles:
- Question generation (per phase, with forced sub-topic rotation)
- Answer and follow-up evaluation
- Final report narrative
"""

from interview_engine.models.panel import PanelPhase, Panelist


# === SUB-TOPIC ROTATION POOLS ===
# Each question number is pinned to one sub-topic so consecutive questions
# cover different ground.

WARMUP_SUBTOPICS = [
    "your background and journey into this technology stack",
    "a challenging project you shipped recently and the technical decisions you made",
    "a time you had to learn a new tool or technology under time pressure",
    "your development workflow: tools, testing habits, and code review approach",
    "a production incident or bug you debugged and what you learned",
]

CORE_SUBTOPICS = [
    "concurrency and thread-safety (locks, race conditions, atomic operations)",
    "memory management and garbage collection internals",
    "design patterns (which ones you apply and why, with a real example)",
    "performance profiling and optimization techniques",
    "security: common vulnerabilities and how you prevent them in your code",
    "distributed systems concepts: consistency, availability, partition tolerance",
    "testing strategy: unit vs integration vs e2e, mocking, test coverage",
    "system architecture and scalability: how you would design for 10x load",
    "database internals: indexing strategies, query optimization, transactions",
    "framework internals and how the technology works under the hood",
]

CODING_SUBTOPICS = [
    "arrays or strings manipulation with optimal time complexity",
    "linked list or tree traversal",
    "dynamic programming or memoization",
    "graph traversal (BFS/DFS)",
    "hash maps and frequency counting",
    "sliding window or two-pointer technique",
    "binary search or sorted data structures",
    "stack or queue based problem",
]

QUERY_SUBTOPICS = [
    "window functions (ROW_NUMBER, RANK, DENSE_RANK, LAG, LEAD)",
    "complex multi-table JOINs with aggregation",
    "CTEs and recursive queries",
    "subqueries vs JOINs performance considerations",
    "grouping, HAVING clauses and conditional aggregation",
    "NULL handling and COALESCE patterns",
    "self-joins and hierarchical data",
]

SUBTOPIC_POOLS: dict[PanelPhase, list[str]] = {
    PanelPhase.WARMUP: WARMUP_SUBTOPICS,
    PanelPhase.CORE: CORE_SUBTOPICS,
    PanelPhase.CODING: CODING_SUBTOPICS,
    PanelPhase.QUERY: QUERY_SUBTOPICS,
}


def pick_subtopic(phase: PanelPhase, question_number: int) -> str:
    """Sub-topic for the 1-based question number within a phase."""
    pool = SUBTOPIC_POOLS.get(phase, CORE_SUBTOPICS)
    return pool[(question_number - 1) % len(pool)]


class PanelPrompts:
    """
    Prompt templates for the panel interview oracles.

    Key principles:
    - One specific question per call, pinned to a sub-topic
    - Strict 0-10 scoring with a fixed point breakdown
    - JSON-only responses
    """

    SCORING_BREAKDOWN = """Evaluate strictly on a 0-10 scale based on:
- Correctness and completeness (0-4 pts)
- Clarity and reasoning (0-2 pts)
- Depth and best practices (0-2 pts)
- Edge cases / error handling (0-2 pts)"""

    # =========================================================================
    # QUESTION GENERATION
    # =========================================================================

    def generate_question_system_prompt(
        self,
        panelist: Panelist,
        phase: PanelPhase,
        track: str,
        experience_years: str,
        target_role: str,
        difficulty: str,
        question_number: int,
        previous_qa: list[tuple[str, str, float]],
        already_asked: list[str],
        subtopic: str,
    ) -> str:
        """System prompt framing the panelist, the candidate and the history."""

        avg_score = sum(s for _, _, s in previous_qa) / len(previous_qa) if previous_qa else 5.0
        if avg_score >= 7.5:
            difficulty_hint = "harder"
        elif avg_score < 4:
            difficulty_hint = "easier"
        else:
            difficulty_hint = "same difficulty"

        context = "\n\n".join(
            f"Q{i}: {q}\nA: {a}\nScore: {s:g}/10"
            for i, (q, a, s) in enumerate(previous_qa[-3:], start=1)
        )
        context_block = (
            f"\nPrevious Q&A context (for continuity only, do NOT repeat these topics):\n{context}"
            if context else ""
        )

        do_not_repeat = ""
        if already_asked:
            asked = "\n".join(f"{i}. {q}" for i, q in enumerate(already_asked, start=1))
            do_not_repeat = (
                "\n\nSTRICT RULE: The following questions have ALREADY been asked. "
                f"Do NOT repeat, rephrase, or overlap with ANY of them:\n{asked}\n"
            )

        return f"""You are {panelist.name} ({panelist.role}) on an AI interview panel.
Track: {track}, Experience: {experience_years} years, Role: {target_role}, Difficulty: {difficulty}.
You are generating question #{question_number} for the {phase.value} phase.
Based on recent performance (avg {avg_score:.1f}/10), make the question {difficulty_hint}.{context_block}{do_not_repeat}
MANDATORY: This question MUST specifically focus on the sub-topic: "{subtopic}".
Generate a UNIQUE, SPECIFIC question on this sub-topic that has NOT been asked before in this session."""

    def generate_question_user_prompt(
        self,
        phase: PanelPhase,
        track: str,
        experience_years: str,
        target_role: str,
        difficulty: str,
        subtopic: str,
    ) -> str:
        """Phase-specific request for a single question in strict JSON."""

        if phase == PanelPhase.CODING:
            return f"""Generate exactly 1 coding problem specifically about "{subtopic}" for a {track} {difficulty} interview.
Candidate has {experience_years} years experience applying for {target_role}.
Make the problem concrete, named, and different from any typical "reverse a string" or "two sum" pattern.
Include the problem statement, constraints, 2 public test cases and starter code.
Respond in STRICT JSON:
{{
    "questionText": "full problem statement",
    "constraints": "time/space constraints, input limits",
    "editor": {{
        "enabled": true,
        "languageOptions": ["javascript", "python", "java"],
        "starterCode": "// starter code in javascript",
        "testCases": [
            {{"input": "...", "output": "..."}},
            {{"input": "...", "output": "..."}}
        ]
    }}
}}"""

        if phase == PanelPhase.QUERY:
            return f"""Generate exactly 1 SQL query question specifically about "{subtopic}" for a {track} {difficulty} interview.
Candidate has {experience_years} years experience.
Make it a realistic business scenario (e-commerce, banking, SaaS, etc.) with concrete tables and data.
Respond in STRICT JSON:
{{
    "questionText": "full question with table schema and sample data",
    "constraints": "must handle: NULLs, duplicates, edge cases specific to this scenario",
    "schemaInfo": "CREATE TABLE ... (show 1-3 tables with realistic columns)"
}}"""

        kind = "warm-up" if phase == PanelPhase.WARMUP else "core technical"
        return f"""Generate exactly 1 {kind} interview question specifically about "{subtopic}" for a {track} candidate.
Candidate has {experience_years} years experience applying for {target_role} ({difficulty} difficulty).
The question must:
- Be directly and specifically about "{subtopic}", not a generic question
- Be answerable in 2-4 minutes verbally
- Probe real hands-on knowledge, not just definitions
- Be phrased as a single clear question (not multi-part)
Respond in STRICT JSON:
{{
    "questionText": "the specific question, mentioning the sub-topic explicitly",
    "constraints": "any specific focus or scenario constraints"
}}"""

    # =========================================================================
    # EVALUATION
    # =========================================================================

    def generate_evaluation_prompt(
        self,
        asked_by: str,
        question_text: str,
        constraints: str | None,
        schema_info: str | None,
        answer: str,
        language: str | None,
        track: str,
        experience_years: str,
        difficulty: str,
    ) -> str:
        """Prompt for scoring a panel answer and proposing a follow-up."""

        extra = ""
        if constraints:
            extra += f"\nConstraints: {constraints}"
        if schema_info:
            extra += f"\nSchema: {schema_info}"
        lang = f" ({language})" if language else ""

        return f"""You are a strict technical interviewer evaluating a {track} candidate with {experience_years} years experience ({difficulty} difficulty).

=== QUESTION ASKED BY {asked_by.upper()} ===
"{question_text}"{extra}

=== CANDIDATE'S ANSWER{lang} ===
\"\"\"
{answer or "[No answer provided]"}
\"\"\"

{self.SCORING_BREAKDOWN}

Respond ONLY in valid JSON:
{{
    "score": <0-10>,
    "feedback": "2-3 sentences of specific, constructive feedback",
    "followUpQuestion": "one targeted follow-up question if score < 7, else null"
}}"""

    def generate_follow_up_prompt(
        self,
        original_question: str,
        follow_up_question: str,
        follow_up_answer: str,
        track: str,
    ) -> str:
        """Prompt for scoring a follow-up answer."""

        return f"""A candidate was asked a follow-up question during a {track} interview.

Original question: "{original_question}"
Follow-up question: "{follow_up_question}"
Follow-up answer: "{follow_up_answer or "[No answer]"}"

Score 0-10 and provide brief feedback. JSON only:
{{"score": <0-10>, "feedback": "1-2 sentences"}}"""

    # =========================================================================
    # FINAL REPORT
    # =========================================================================

    def generate_report_prompt(
        self,
        track: str,
        experience_years: str,
        target_role: str,
        difficulty: str,
        qa_summary: str,
        overall_score: int,
        partial_note: str = "",
    ) -> str:
        """Prompt for the narrative part of the final report."""

        return f"""You are a senior hiring manager generating a structured final interview report.
{partial_note}
=== CANDIDATE PROFILE ===
- Track: {track}
- Experience: {experience_years} years
- Applied Role: {target_role}
- Difficulty: {difficulty}

=== INTERVIEW Q&A ===
{qa_summary}

Overall score: {overall_score}/100

Generate a comprehensive, actionable report. Be specific and reference actual questions and answers.
Respond ONLY in valid JSON matching this EXACT schema:
{{
    "strengths": ["3-5 specific strengths based on their answers"],
    "weakAreas": ["3-5 specific weak areas"],
    "mistakesSummary": ["list of specific mistakes made in the interview"],
    "interviewTips": ["5 actionable tips for how to answer better in real interviews"],
    "focusAreas": ["6-8 specific topics to study in the next 2 weeks"],
    "improvementPlan": "A 3-paragraph personalized improvement plan",
    "questionBreakdown": [
        {{
            "questionText": "exact question",
            "phase": "warmup|core|coding|query",
            "askedBy": "Panelist A|B|C",
            "score": <0-10>,
            "maxScore": 10,
            "feedback": "specific feedback",
            "whereYouWentWrong": "specific explanation if score < 7, else null"
        }}
    ]
}}"""

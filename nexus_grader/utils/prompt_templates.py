"""
Prompt templates for LLM interactions in the Nexus Grader
"""


class PromptTemplates:
    """Collection of prompt templates for different LLM tasks"""

    GRADER_SYSTEM = "You are a fair and constructive educational grader. Always respond with valid JSON only."

    SUBJECTIVE_GRADING = """You are an educational grading assistant. Grade the following student answers.

For each question, provide:
1. A score from 0 to the maximum marks
2. Brief feedback (1-2 sentences)

Questions and Answers:
{questions_block}

Respond in JSON format:
{{
  "grades": [
    {{
      "questionId": "id",
      "marksObtained": number,
      "feedback": "string",
      "isCorrect": boolean
    }}
  ]
}}"""

    SUBJECTIVE_ITEM = """
Question ID: {question_id}
Question ({question_type}, {marks} marks): {text}
{model_answer}Student Answer: {answer}
"""

    SUBJECTIVE_SEPARATOR = "\n---\n"

    COACH_SYSTEM = "You are an encouraging educational coach. Provide brief, constructive feedback."

    OVERALL_FEEDBACK = """A student completed a practice test with the following results:
- Score: {total_score}/{max_score} ({percentage}%)
- Correct answers: {correct_count}/{total_questions}

Provide 2-3 sentences of encouraging feedback and one specific suggestion for improvement."""

    # Local fallbacks, by percentage band
    FEEDBACK_EXCELLENT = "Excellent work! You scored {percentage}% on this practice test. Keep up the great effort!"
    FEEDBACK_GOOD = "Good effort! You scored {percentage}%. Review the questions you missed and try again to improve."
    FEEDBACK_FAIR = (
        "You scored {percentage}%. You have a foundation to build on. "
        "Revisit the topics behind the questions you missed before your next attempt."
    )
    FEEDBACK_LOW = (
        "You scored {percentage}% on this practice. Review the material and practice more "
        "to improve your understanding."
    )

    GENERATOR_SYSTEM = "You are an expert teacher creating test questions. Respond only with a JSON array."

    QUESTION_GENERATION = """You are an expert teacher creating questions for a test.

SUBJECT: {subject_name}
CHAPTER(S): {chapter_titles}

CHAPTER CONTENT:
{chapter_content}

TASK: Generate questions ONLY from the above chapter content. Do not use external knowledge.

Generate exactly:
{counts_block}

IMPORTANT: Respond ONLY with a valid JSON array. No markdown, no code blocks, no explanation, no thinking.

Each question must follow this exact format:

For MCQ:
{{"type": "mcq", "text": "Question text?", "options": ["Option A", "Option B", "Option C", "Option D"], "correctAnswer": "option0", "marks": {mcq_marks}}}
Note: correctAnswer must be "option0", "option1", "option2", or "option3" (index of correct option).

For Fill in the Blank:
{{"type": "blank", "text": "The _____ is the answer.", "correctAnswer": "missing word", "marks": {blank_marks}}}

For Short Answer:
{{"type": "short", "text": "What is...?", "marks": {short_marks}}}

For Long Answer:
{{"type": "long", "text": "Explain in detail...", "marks": {long_marks}}}

OUTPUT ONLY THE JSON ARRAY:"""

"""AI authoring endpoints: document analysis, question generation and review."""

from fastapi import APIRouter, Depends

from kidquiz.core.dependencies import require_roles
from kidquiz.models.user import User, UserRole
from kidquiz.schemas.assistant import (
    CurrentQuestion,
    DocumentAnalysisOut,
    DocumentAnalysisRequest,
    ExtractedQuestionOut,
    QuestionExtractionOut,
    QuestionExtractionRequest,
    RegenerateQuestionOut,
    RegenerateQuestionRequest,
)
from kidquiz.schemas.question_bank import (
    EvaluateQuestionRequest,
    GenerateVariantsOut,
    GenerateVariantsRequest,
    QualityEvaluation,
    QuestionBankItem,
)
from kidquiz.services.assistant import Assistant, build_regeneration_payload, get_assistant

router = APIRouter()

require_author = require_roles(UserRole.ADMIN, UserRole.TEACHER)


@router.post("/analyze-document", response_model=DocumentAnalysisOut)
async def analyze_document(
    payload: DocumentAnalysisRequest,
    current_user: User = Depends(require_author),
    assistant: Assistant = Depends(get_assistant),
) -> DocumentAnalysisOut:
    result = await assistant.analyze_document(payload.content, payload.clarification_answer)
    return DocumentAnalysisOut(**result)


@router.post("/extract-questions", response_model=QuestionExtractionOut)
async def extract_questions(
    payload: QuestionExtractionRequest,
    current_user: User = Depends(require_author),
    assistant: Assistant = Depends(get_assistant),
) -> QuestionExtractionOut:
    questions = await assistant.extract_questions(payload.content, payload.count, payload.topics)
    return QuestionExtractionOut(questions=[ExtractedQuestionOut(**q) for q in questions])


@router.post("/regenerate-question", response_model=RegenerateQuestionOut)
async def regenerate_question(
    payload: RegenerateQuestionRequest,
    current_user: User = Depends(require_author),
    assistant: Assistant = Depends(get_assistant),
) -> RegenerateQuestionOut:
    request_payload = build_regeneration_payload(
        payload.current_question.model_dump(),
        list(payload.dirty_fields),
        payload.document_text,
    )
    question = await assistant.regenerate_question(request_payload)
    return RegenerateQuestionOut(
        question=CurrentQuestion(**question),
        preserved_fields=request_payload["preserveFields"],
    )


@router.post("/generate-variants", response_model=GenerateVariantsOut)
async def generate_variants(
    payload: GenerateVariantsRequest,
    current_user: User = Depends(require_author),
    assistant: Assistant = Depends(get_assistant),
) -> GenerateVariantsOut:
    """Generate question bank items for each configuration."""
    questions = await assistant.generate_variants(
        [c.model_dump() for c in payload.configurations], payload.document_text
    )
    return GenerateVariantsOut(questions=[QuestionBankItem(**q) for q in questions])


@router.post("/evaluate-question", response_model=QualityEvaluation)
async def evaluate_question(
    payload: EvaluateQuestionRequest,
    current_user: User = Depends(require_author),
    assistant: Assistant = Depends(get_assistant),
) -> QualityEvaluation:
    result = await assistant.evaluate_quality(payload.question, payload.answer, payload.working)
    return QualityEvaluation(**result)

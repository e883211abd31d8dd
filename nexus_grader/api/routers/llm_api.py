"""
LLM Operations Router
Question generation, JSON recovery and provider chain information
"""
import time
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, HTTPException, status

from ...models.schemas import ParseRequest, ParseResponse, Question, QuestionGenerationRequest
from ...services.llm_service import LLMService, llm_service
from ...services.question_service import QuestionGenerationError, QuestionGenerator
from ...utils.json_recovery import JSONRecoveryError, parse_array


logger = logging.getLogger(__name__)

# Router for LLM operations
router = APIRouter(
    prefix="/llm",
    tags=["LLM Operations"],
    responses={404: {"description": "Not found"}},
)

# Global services (replaced from main app when a config store is used)
provider: LLMService = llm_service
question_generator: QuestionGenerator = QuestionGenerator()


def set_services(llm_svc: LLMService, generator: QuestionGenerator):
    """Set LLM services from main application"""
    global provider, question_generator
    provider = llm_svc
    question_generator = generator


@router.post("/questions/generate", response_model=List[Question])
async def generate_questions(request: QuestionGenerationRequest) -> List[Question]:
    """Generate questions from the selected chapters' content"""
    start_time = time.time()
    try:
        questions = await question_generator.generate(request)
    except QuestionGenerationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except Exception as e:
        logger.error(f"Question generation failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Question generation failed: {str(e)}"
        )

    processing_time = (time.time() - start_time) * 1000
    logger.info(f"Generated {len(questions)} questions in {processing_time:.2f}ms")
    return questions


@router.post("/parse", response_model=ParseResponse)
async def parse_response(request: ParseRequest) -> ParseResponse:
    """Run raw provider text through JSON recovery"""
    try:
        items, truncated = parse_array(request.raw)
    except JSONRecoveryError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return ParseResponse(items=items, truncated=truncated)


@router.get("/info")
async def get_provider_info() -> Dict[str, Any]:
    """Get information about the provider fallback chain"""
    return provider.get_provider_info()

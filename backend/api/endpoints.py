from fastapi import APIRouter, HTTPException
import logging

from backend.schemas import schemas
from backend.services import engine_service
from breedlab.errors import BreedlabError

router = APIRouter()
logger = logging.getLogger(__name__)

# BreedlabError subclasses are re-raised and mapped to 422/400 by the
# handlers registered in backend.main; anything else is a server fault.

@router.post("/relationship", response_model=schemas.RelationshipResponse)
def build_relationship(request: schemas.RelationshipRequest):
    """
    Builds the additive relationship matrix and inbreeding coefficients
    for a pedigree listed parents-before-offspring.
    """
    try:
        return engine_service.run_relationship_service(request)
    except BreedlabError:
        raise
    except Exception as e:
        logger.error(f"Error building relationship matrix: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))

@router.post("/blup", response_model=schemas.BLUPResponse)
def solve_blup(request: schemas.BLUPRequest):
    try:
        return engine_service.run_blup_service(request)
    except BreedlabError:
        raise
    except Exception as e:
        logger.error(f"Error solving mixed model equations: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))

@router.post("/genomic", response_model=schemas.GenomicResponse)
def build_genomic(request: schemas.GenomicRequest):
    try:
        return engine_service.run_genomic_service(request)
    except BreedlabError:
        raise
    except Exception as e:
        logger.error(f"Error building genomic relationship matrix: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))

@router.post("/simulate", response_model=schemas.SimulationResponse)
def run_simulation(request: schemas.SimulationRequest):
    """
    Runs one seeded breeding simulation. Synchronous handlers run in the
    server's threadpool, so long runs do not block the event loop.
    """
    try:
        return engine_service.run_simulation_service(request)
    except BreedlabError:
        raise
    except Exception as e:
        logger.error(f"Error during simulation: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))

@router.post("/simulate/compare", response_model=schemas.ComparisonResponse)
def compare_mating_strategies(request: schemas.ComparisonRequest):
    try:
        return engine_service.run_comparison_service(request)
    except BreedlabError:
        raise
    except Exception as e:
        logger.error(f"Error during strategy comparison: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))

@router.post("/params", response_model=schemas.GeneticParamsResponse)
def genetic_params(request: schemas.GeneticParamsRequest):
    try:
        return engine_service.run_params_service(request)
    except BreedlabError:
        raise
    except Exception as e:
        logger.error(f"Error computing genetic parameters: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))

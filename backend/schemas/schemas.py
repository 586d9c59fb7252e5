from pydantic import BaseModel, Field
from typing import List, Dict, Any, Optional, Literal, Union

# --- Base Models ---
class PedigreeEntry(BaseModel):
    id: Union[str, int]
    sire: Optional[Union[str, int]] = None
    dam: Optional[Union[str, int]] = None
    generation: Optional[int] = None

class ObservationEntry(BaseModel):
    animal: str
    value: float
    group: str

# --- API Request/Response Schemas ---

# /relationship
class RelationshipRequest(BaseModel):
    pedigree: List[PedigreeEntry]
    strict: Optional[bool] = None # falls back to the STRICT_PEDIGREE setting
    include_trace: bool = True

class TraceStepSchema(BaseModel):
    kind: str
    animal: str
    other: str
    value: float
    formula: str

class RelationshipResponse(BaseModel):
    ids: List[str]
    A: List[List[float]]
    F: List[float]
    trace: List[TraceStepSchema] = []

# /blup
class BLUPRequest(BaseModel):
    pedigree: List[PedigreeEntry]
    observations: List[ObservationEntry]
    sigma_e2: float
    sigma_a2: float
    strict: Optional[bool] = None
    include_steps: bool = False

class BreedingValueSchema(BaseModel):
    id: str
    ebv: float
    pev: float
    reliability: float
    accuracy: float

class FixedEffectSchema(BaseModel):
    level: str
    estimate: float

class SolverStepSchema(BaseModel):
    step: int
    title: str
    data: Dict[str, Any]

class BLUPResponse(BaseModel):
    alpha: float
    fixed_effects: List[FixedEffectSchema]
    breeding_values: List[BreedingValueSchema]
    lhs: List[List[float]]
    rhs: List[float]
    steps: List[SolverStepSchema] = []

# /genomic
class GenomicRequest(BaseModel):
    genotypes: List[List[float]]
    ids: Optional[List[str]] = None

class GenomicResponse(BaseModel):
    ids: List[str]
    G: List[List[float]]
    Z: List[List[float]]
    freqs: List[float]
    scale: float

# /simulate
class SimulationRequest(BaseModel):
    h2: float = Field(0.3, gt=0, le=1)
    intensity: float = Field(1.4, ge=0)
    generation_interval: float = Field(5.0, gt=0)
    pop_size: int = Field(200, ge=4)
    n_generations: int = Field(10, ge=1)
    mating_strategy: Literal["random", "avoidance", "optimal"] = "random"
    pheno_var: float = Field(100.0, gt=0)
    init_mean: float = 100.0
    seed: Optional[int] = None # falls back to the DEFAULT_SEED setting

class GenerationSummarySchema(BaseModel):
    generation: int
    mean_bv: float
    var_bv: float
    mean_pheno: float
    delta_g: float
    cumulative_gain: float
    mean_f: float
    pop_size: int
    years: float

class RunSummarySchema(BaseModel):
    expected_response: float
    realized_response: float
    total_gain: float
    final_f: float
    efficiency: float
    expected_annual_response: float
    realized_annual_response: float

class SimulationResponse(BaseModel):
    seed: int
    mating_strategy: str
    generations: List[GenerationSummarySchema]
    summary: RunSummarySchema

# /simulate/compare
class ComparisonRequest(SimulationRequest):
    strategies: List[Literal["random", "avoidance", "optimal"]] = ["random", "avoidance", "optimal"]

class ComparisonResponse(BaseModel):
    seed: int
    results: Dict[str, SimulationResponse]

# /params
class GeneticParamsRequest(BaseModel):
    va: float = Field(..., ge=0)
    vd: float = Field(0.0, ge=0)
    ve: float = Field(..., ge=0)
    intensity: Optional[float] = None
    generation_interval: Optional[float] = None

class GeneticParamsResponse(BaseModel):
    vp: float
    h2_broad: float
    h2_narrow: float
    share_va: float
    share_vd: float
    share_ve: float
    selection_response: Optional[float] = None
    annual_response: Optional[float] = None

# General Error
class ErrorDetail(BaseModel):
    code: str
    message: str
    details: Optional[Any] = None

class ErrorResponse(BaseModel):
    error: ErrorDetail

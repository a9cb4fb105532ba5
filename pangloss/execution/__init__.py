from .artifacts import read_result_artifact, write_result_artifact
from .config import PanglossConfig, apply_env_overrides, load_config, write_default_config
from .convenience import create_registry, create_test_registry, run_generation
from .coordinator import AgentInvoker, ParallelCoordinator
from .invocation import AgentInvocation
from .merge import MergeEngine
from .reporting import build_outcome, render_pr_body, render_summary
from .runner import GenerateOptions, Pangloss
from .scoring import rank_results, score, select_candidates

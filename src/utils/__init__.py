"""utils package."""

from .seed import make_seed, make_rng, derive_seed
from .timing import Timer, Deadline
from .output import make_output_dir, save_json, json_default
from .config import JsonConfigMixin, flatten_parameters

__all__ = [
	"make_seed",
	"make_rng",
	"derive_seed",
	"Timer",
	"Deadline",
	"make_output_dir",
	"save_json",
	"json_default",
	"JsonConfigMixin",
	"flatten_parameters",
]

"""R driver scripts for the FACETS engine.

Each script is a jinja2 template rendered with file paths and run parameters,
then executed with ``Rscript``. Scripts exchange data with Python through
tab-delimited files in the engine's work directory.
"""

from __future__ import annotations

import math
from typing import Any, Optional

from jinja2 import Environment, StrictUndefined


def r_string(value: Any) -> str:
    """Quote a value as an R string literal."""
    s = str(value).replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{s}"'


def r_number(value: Optional[float]) -> str:
    """Format a number for R; None and NaN become ``NULL``."""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return "NULL"
    return repr(float(value))


_env = Environment(undefined=StrictUndefined, keep_trailing_newline=True, autoescape=False)
_env.filters["rstr"] = r_string
_env.filters["rnum"] = r_number


_PREAMBLE = """\
suppressPackageStartupMessages({
{%- if facets_lib_path %}
    library(facets, lib.loc = {{ facets_lib_path | rstr }})
{%- else %}
    library(facets)
{%- endif %}
    library(facetsSuite)
})

write_tsv = function(x, path) {
    write.table(x, file = path, quote = FALSE, sep = '\\t', row.names = FALSE, col.names = TRUE)
}

scalar = function(x) if (is.null(x) || length(x) == 0) NA else x[[1]]

"""

_RUN = """\
read_counts = read.delim({{ counts_path | rstr }}, stringsAsFactors = FALSE, check.names = FALSE,
                         colClasses = c(Chromosome = 'character'))

output = run_facets(read_counts = read_counts,
                    cval = {{ cval }},
                    dipLogR = {{ dip_log_r | rnum }},
                    ndepth = {{ ndepth }},
                    snp_nbhd = {{ snp_nbhd }},
                    min_nhet = {{ min_nhet }},
                    genome = {{ genome | rstr }},
                    seed = {{ seed }},
                    facets_lib_path = {{ facets_lib_path | rstr }})

saveRDS(output, {{ rds_path | rstr }})
write_tsv(output$segs, {{ segs_path | rstr }})
write_tsv(output$snps, {{ snps_path | rstr }})
write_tsv(data.frame(purity = scalar(output$purity),
                     ploidy = scalar(output$ploidy),
                     dipLogR = scalar(output$dipLogR),
                     facets_version = as.character(packageVersion('facets'))),
          {{ summary_path | rstr }})
writeLines(as.character(output$flags), {{ flags_path | rstr }})
"""

_METRICS = """\
output = readRDS({{ rds_path | rstr }})

arm = arm_level_changes(output$segs, output$ploidy, {{ genome | rstr }})
metrics = c(arm[setdiff(names(arm), 'full_output')],
            calculate_lst(output$segs, output$ploidy, {{ genome | rstr }}),
            calculate_ntai(output$segs, output$ploidy, {{ genome | rstr }}),
            calculate_hrdloh(output$segs, output$ploidy),
            calculate_loh(output$segs, output$snps, {{ genome | rstr }}))

write_tsv(data.frame(genome_doubled = scalar(metrics$genome_doubled),
                     fraction_cna = scalar(metrics$fraction_cna),
                     hypoploid = scalar(metrics$hypoploid),
                     fraction_loh = scalar(metrics$fraction_loh),
                     lst = scalar(metrics$lst),
                     ntai = scalar(metrics$ntelomeric_ai),
                     hrd_loh = scalar(metrics$hrd_loh)),
          {{ metrics_path | rstr }})
write_tsv(arm$full_output, {{ arm_level_path | rstr }})
"""

_CHECK_FIT = """\
output = readRDS({{ rds_path | rstr }})

qc = check_fit(output, genome = {{ genome | rstr }})
qc = lapply(qc, function(x) if (length(x) > 1) paste(x, collapse = ';') else scalar(x))
write_tsv(as.data.frame(qc, stringsAsFactors = FALSE), {{ qc_path | rstr }})
"""

_GENE_LEVEL = """\
output = readRDS({{ rds_path | rstr }})

write_tsv(gene_level_changes(output, {{ genome | rstr }}), {{ gene_level_path | rstr }})
"""

_LEGACY = """\
output = readRDS({{ rds_path | rstr }})
run_details = read.delim({{ run_details_path | rstr }}, stringsAsFactors = FALSE, check.names = FALSE)

create_legacy_output(output, {{ directory | rstr }}, {{ sample_id | rstr }}, {{ counts_file | rstr }},
                     {{ run_type | rstr }}, run_details)
"""

TEMPLATES = {
    "run": _env.from_string(_PREAMBLE + _RUN),
    "metrics": _env.from_string(_PREAMBLE + _METRICS),
    "check_fit": _env.from_string(_PREAMBLE + _CHECK_FIT),
    "gene_level": _env.from_string(_PREAMBLE + _GENE_LEVEL),
    "legacy": _env.from_string(_PREAMBLE + _LEGACY),
}


def render_script(name: str, **params: Any) -> str:
    """Render the named R driver script; every placeholder must be supplied."""
    try:
        template = TEMPLATES[name]
    except KeyError:
        raise ValueError(f"Unknown R driver script: {name}") from None
    return template.render(**params)

"""ANALYSIS: per-track DSP pipeline.

- Loader: chunked, capped decode into a stereo AudioBuffer
- Analyzers: spectral, dynamic range, clipping, noise floor, channels
- Scoring: weighted overall score, notes, re-rip recommendation
"""

from ripaudit.analysis.channels import ChannelResult, analyze_channels
from ripaudit.analysis.clipping import ClippingResult, analyze_clipping
from ripaudit.analysis.dynamics import DynamicRangeResult, analyze_dynamics
from ripaudit.analysis.loader import AudioBuffer, DecoderBackend, load_audio
from ripaudit.analysis.noise import NoiseFloorResult, analyze_noise_floor
from ripaudit.analysis.processor import TrackProcessor, TrackQualityResult
from ripaudit.analysis.scoring import build_notes, collect_issues, overall_score
from ripaudit.analysis.settings import AnalysisScope, AnalysisSettings, ScoringThresholds
from ripaudit.analysis.spectral import SpectralResult, analyze_spectral

__all__ = [
    "AudioBuffer",
    "DecoderBackend",
    "load_audio",
    "SpectralResult",
    "analyze_spectral",
    "DynamicRangeResult",
    "analyze_dynamics",
    "ClippingResult",
    "analyze_clipping",
    "NoiseFloorResult",
    "analyze_noise_floor",
    "ChannelResult",
    "analyze_channels",
    "overall_score",
    "build_notes",
    "collect_issues",
    "TrackProcessor",
    "TrackQualityResult",
    "AnalysisScope",
    "AnalysisSettings",
    "ScoringThresholds",
]

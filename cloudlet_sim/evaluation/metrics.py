"""Simulation analysis and metrics calculation."""

from typing import Dict, List, Any
import numpy as np
import pandas as pd
from loguru import logger

from ..core.cloudlet import CloudletStatus, Priority
from ..core.simulator import CompletedCloudletRecord, SimulationResult


RECORD_COLUMNS = [
    'cloudlet_id', 'status', 'priority', 'datacenter_id', 'vm_id', 'length',
    'submission_time', 'start_time', 'finish_time', 'actual_cpu_time', 'cost',
    'failure_reason',
]


def records_to_dataframe(records: List[CompletedCloudletRecord]) -> pd.DataFrame:
    """One row per cloudlet, in completion order."""
    if not records:
        return pd.DataFrame(columns=RECORD_COLUMNS + ['wait_time'])
    df = pd.DataFrame([r.to_dict() for r in records], columns=RECORD_COLUMNS)
    time_columns = ['submission_time', 'start_time', 'finish_time', 'actual_cpu_time', 'cost']
    df[time_columns] = df[time_columns].astype(float)
    df['wait_time'] = df['start_time'] - df['submission_time']
    return df


class MetricsCalculator:
    """Calculator for per-run performance metrics."""

    def __init__(self):
        self.logger = logger.bind(component="MetricsCalculator")

    def calculate_status_metrics(self, df: pd.DataFrame) -> Dict[str, float]:
        total = len(df)
        succeeded = int((df['status'] == CloudletStatus.SUCCESS.value).sum()) if total else 0
        failed = int((df['status'] == CloudletStatus.FAILED.value).sum()) if total else 0
        return {
            'total_cloudlets': total,
            'successful_cloudlets': succeeded,
            'failed_cloudlets': failed,
            'success_rate': succeeded / total if total else 0.0,
        }

    def calculate_timing_metrics(self, df: pd.DataFrame) -> Dict[str, float]:
        done = df[df['status'] == CloudletStatus.SUCCESS.value]
        if done.empty:
            return {
                'makespan': 0.0,
                'avg_cpu_time': 0.0,
                'avg_wait_time': 0.0,
                'p95_finish_time': 0.0,
            }
        return {
            'makespan': float(done['finish_time'].max()),
            'avg_cpu_time': float(done['actual_cpu_time'].mean()),
            'avg_wait_time': float(done['wait_time'].mean()),
            'p95_finish_time': float(np.percentile(done['finish_time'], 95)),
        }

    def calculate_cost_metrics(self, df: pd.DataFrame) -> Dict[str, float]:
        total = float(df['cost'].sum()) if not df.empty else 0.0
        return {
            'total_cost': total,
            'avg_cost': total / len(df) if len(df) else 0.0,
        }

    def calculate_priority_metrics(self, df: pd.DataFrame) -> Dict[str, Dict[str, float]]:
        """Counts and mean timings grouped by priority class."""
        breakdown: Dict[str, Dict[str, float]] = {}
        for priority in Priority:
            group = df[df['priority'] == priority.name]
            if group.empty:
                continue
            done = group[group['status'] == CloudletStatus.SUCCESS.value]
            breakdown[priority.name] = {
                'count': int(len(group)),
                'successful': int(len(done)),
                'avg_finish_time': float(done['finish_time'].mean()) if not done.empty else 0.0,
                'avg_start_time': float(done['start_time'].mean()) if not done.empty else 0.0,
            }
        return breakdown

    def count_priority_inversions(self, df: pd.DataFrame) -> int:
        """Pairs on the same VM where a lower-priority cloudlet started first."""
        started = df.dropna(subset=['start_time'])
        inversions = 0
        for _, group in started.groupby('vm_id'):
            ranks = group['priority'].map(lambda name: int(Priority[name])).to_numpy()
            starts = group['start_time'].to_numpy()
            for i in range(len(group)):
                for j in range(len(group)):
                    if ranks[i] < ranks[j] and starts[i] > starts[j]:
                        inversions += 1
        return inversions


class SimulationAnalyzer:
    """Analyzer for simulation results."""

    def __init__(self):
        self.calculator = MetricsCalculator()
        self.logger = logger.bind(component="SimulationAnalyzer")

    def analyze_simulation(self, result: SimulationResult) -> Dict[str, Any]:
        """Summary, timing, cost and per-priority breakdown of one run."""
        df = records_to_dataframe(result.records)
        self.logger.info(f"Analyzing simulation with {len(df)} cloudlet records")

        analysis = {
            'summary': {
                **self.calculator.calculate_status_metrics(df),
                'rejected_submissions': len(result.rejected),
                'vms_created': len(result.vms_created),
                'vms_failed': len(result.vms_failed),
                'simulated_time': result.clock,
                'events_processed': result.events_processed,
            },
            'timing_metrics': self.calculator.calculate_timing_metrics(df),
            'cost_metrics': self.calculator.calculate_cost_metrics(df),
            'priority_metrics': self.calculator.calculate_priority_metrics(df),
            'priority_inversions': self.calculator.count_priority_inversions(df),
            'records': [r.to_dict() for r in result.records],
        }

        self.logger.info(f"Analysis completed. Success rate: {analysis['summary']['success_rate']:.2%}")
        return analysis

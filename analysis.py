"""
This module contains the schedulability tests that consume the results of the blocking analyses in module protocols.
"""

from lib import ObliviousTask, feasible, implicit, task_list, utilization


def soft(ts, num_cpus):
    """Tests whether a task set has bounded response times under global EDF and/or global FIFO.

    Both schedulers share the same condition for bounded tardiness, although not the same tardiness bounds. See [1].

    Args:
        ts: A task, an ObliviousTask, or any (nested) collection of them.
        num_cpus: Number of processors.

    Returns:
        None if not all deadlines are implicit, otherwise whether the test passes.
    """
    ts = task_list(ts)
    if not implicit(ts):
        return None
    return utilization(ts) <= num_cpus and feasible(ts)


def oblivious_tasks(tasks, data):
    """Pairs every task with its analysis result, inflating its cost by the total blocking bound."""
    return [ObliviousTask(task, d) for task, d in zip(tasks, data)]


def is_schedulable(sys, analyzer, num_cpus):
    """Runs analyzer on a System and tests the inflated task set with soft()."""
    data = sys.run(analyzer)
    return soft(oblivious_tasks(sys.tasks, data), num_cpus)


"""
Literature:
[1] Devi, Anderson
    Tardiness Bounds under Global EDF Scheduling on a Multiprocessor (RTSS 2005)
"""

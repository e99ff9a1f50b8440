"""
This module offers the container classes for tasks, resource requests and blocking bounds, together with the basic
operations on them that every locking protocol analysis relies on.
"""

import copy
import functools
from fractions import Fraction


#####################
# Container Classes #
#####################

class Task(object):
    """A single sporadic task.

    Times are integral multiples of some constant time unit, in most cases microseconds.

    Attributes:
        period: Minimum time that passes between two job releases.
        cost: Worst-case execution time (WCET).
        deadline: Relative deadline; equal to the period for implicit-deadline tasks.
        priority: Priority value, lower values mean higher priority. Assigned externally, e.g. by edf().
    """
    def __init__(self, cost, period, deadline=None, priority=0):
        self.period = period
        self.cost = cost
        self.deadline = period if deadline is None else deadline
        self.priority = priority

    def with_deadline(self, deadline):
        """Returns a copy of the task with the given deadline."""
        task = copy.copy(self)
        task.deadline = deadline
        return task

    def edf(self):
        """Returns a copy of the task with EDF-like priority.

        The priority is set to the task's deadline. It is not an actual job priority, but it orders tasks the way
        protocols with priority donation need when run under EDF.
        """
        task = copy.copy(self)
        task.priority = self.deadline
        return task

    def utilization(self):
        """Exact utilization of the task."""
        return Fraction(self.cost, self.period)

    def implicit(self):
        return self.deadline == self.period

    def feasible(self):
        return self.cost <= self.period

    @property
    def description(self):
        return 'Task: T: {0}, C: {1}, D: {2}, P: {3}'.format(self.period, self.cost, self.deadline, self.priority)

    def __repr__(self):
        return 'Task(cost={0}, period={1}, deadline={2}, priority={3})'.format(
            self.cost, self.period, self.deadline, self.priority)


class TaskSet(object):
    """Ordered set of tasks.

    TaskSet acts as a container class for the Task class introduced above. The list of tasks is read-only and is not
    changed after initialization; task indices are used to refer to tasks from resource systems.

    Attributes:
        set_id: Integer value that identifies the instance of TaskSet.
        tasks: Tuple of the tasks contained in this task set.
    """
    def __init__(self, set_id, tasks: [Task]):
        self.set_id = set_id
        self.tasks = tuple(tasks)

    def __len__(self):
        return len(self.tasks)

    def __iter__(self):
        return iter(self.tasks)

    def __getitem__(self, i):
        return self.tasks[i]

    def utilization(self):
        """Exact total utilization of the task set."""
        return utilization(self.tasks)

    def implicit(self):
        return implicit(self.tasks)

    def feasible(self):
        return feasible(self.tasks)

    @property
    def description(self):
        """A short descriptive string about this task set."""
        return 'Task Set {0}: #Tasks: {1}  Util: {2}'.format(
            self.set_id, len(self.tasks), round(float(self.utilization()), 3))


class ObliviousTask(object):
    """A task inflated by the result of an s-oblivious blocking analysis.

    It behaves exactly like the task it wraps, except that its cost is the task's cost plus the length of the total
    blocking bound found by the analysis.

    Attributes:
        task: The wrapped Task.
        data: The ObliviousData computed for that task.
    """
    def __init__(self, task, data):
        self.task = task
        self.data = data

    @property
    def cost(self):
        return self.task.cost + self.data.total.length

    def utilization(self):
        return Fraction(self.cost, self.task.period)

    def implicit(self):
        return self.task.deadline == self.task.period

    def feasible(self):
        return self.cost <= self.task.period


class Request(object):
    """Requests from a single task to a single resource.

    Attributes:
        num: Total number of requests.
        length: Maximum length of a single request.
    """
    def __init__(self, num=0, length=0):
        self.num = num
        self.length = length

    def merge(self, other):
        """Combines other into this request set: counts are summed, the maximum length is kept."""
        self.num += other.num
        self.length = max(self.length, other.length)

    def __eq__(self, other):
        return isinstance(other, Request) and (self.num, self.length) == (other.num, other.length)

    def __repr__(self):
        return 'Request(num={0}, length={1})'.format(self.num, self.length)


class TaskRequest(object):
    """Reference to the requests of a given task to a single resource.

    Attributes:
        task: Index of the requesting task inside its System.
        req: The (shared, not copied) Request object.
    """
    __slots__ = ('task', 'req')

    def __init__(self, task, req):
        self.task = task
        self.req = req

    def __repr__(self):
        return 'TaskRequest(task={0}, req={1!r})'.format(self.task, self.req)


class RwPair(object):
    """A pair of anything, one for read and one for write accesses."""
    __slots__ = ('read', 'write')

    def __init__(self, read, write):
        self.read = read
        self.write = write

    def __eq__(self, other):
        return isinstance(other, RwPair) and (self.read, self.write) == (other.read, other.write)

    def __repr__(self):
        return 'RwPair(read={0!r}, write={1!r})'.format(self.read, self.write)


@functools.total_ordering
class Bound(object):
    """A bound on the number and total length of requests interfering with the requests of a given task.

    Addition and multiplication by an integer act elementwise. Bounds are ordered by length first, then by count.

    Attributes:
        length: Total length of time.
        count: Total request count.
    """
    __slots__ = ('length', 'count')

    def __init__(self, length=0, count=0):
        self.length = length
        self.count = count

    @classmethod
    def single(cls, length):
        """Bound for a single interfering request of the given length."""
        return cls(length=length, count=1)

    def __add__(self, other):
        if not isinstance(other, Bound):
            return NotImplemented
        return Bound(self.length + other.length, self.count + other.count)

    def __iadd__(self, other):
        if not isinstance(other, Bound):
            return NotImplemented
        self.length += other.length
        self.count += other.count
        return self

    def __mul__(self, factor):
        if not isinstance(factor, int):
            return NotImplemented
        return Bound(self.length * factor, self.count * factor)

    __rmul__ = __mul__

    def _key(self):
        return self.length, self.count

    def __eq__(self, other):
        return isinstance(other, Bound) and self._key() == other._key()

    def __lt__(self, other):
        if not isinstance(other, Bound):
            return NotImplemented
        return self._key() < other._key()

    # mutable through +=
    __hash__ = None

    def __repr__(self):
        return 'Bound(length={0}, count={1})'.format(self.length, self.count)


class Limits(object):
    """Request count limits used by bound_blocking().

    Attributes:
        total: Limit for the entire set of interfering requests.
        per_task: Limit for the requests of a single interfering task.
    """
    __slots__ = ('total', 'per_task')

    def __init__(self, total, per_task):
        self.total = total
        self.per_task = per_task

    def __mul__(self, factor):
        return Limits(self.total * factor, self.per_task * factor)

    __rmul__ = __mul__

    def __repr__(self):
        return 'Limits(total={0}, per_task={1})'.format(self.total, self.per_task)


class ObliviousData(object):
    """Result of an s-oblivious analysis for a single task.

    Attributes:
        total: Bound on total request blocking.
        arrival: Bound on arrival blocking; only meaningful for protocols with priority donation.
    """
    __slots__ = ('total', 'arrival')

    def __init__(self, total=None, arrival=None):
        self.total = Bound() if total is None else total
        self.arrival = Bound() if arrival is None else arrival

    @classmethod
    def from_total(cls, total):
        """Interprets a bound as total request blocking with no arrival blocking."""
        return cls(total=total)

    def __repr__(self):
        return 'ObliviousData(total={0!r}, arrival={1!r})'.format(self.total, self.arrival)


####################
# Basic Operations #
####################

def bound_blocking(requests, task, limits):
    """Greedily bounds the blocking that a set of competing requests may cause to a task.

    The longest requests are attributed first, which maximizes the bound. For every task except the one at index
    task, at most limits.per_task requests are summed up, and at most limits.total requests overall.

    Args:
        requests: Iterable of TaskRequest. Must contain at most one entry per task and be sorted by decreasing
            length; this is not checked and an unsorted input yields a wrong bound.
        task: Index of the task under analysis, whose own requests are skipped.
        limits: Limits object.

    Returns:
        The resulting Bound.
    """
    inter = Bound()
    for tr in requests:
        if tr.task == task:
            continue
        remaining = limits.total - inter.count
        if remaining <= 0:
            break
        inter += min(remaining, limits.per_task) * Bound.single(tr.req.length)
    return inter


def _is_task_like(ts):
    return all(hasattr(ts, attr) for attr in ('utilization', 'implicit', 'feasible'))


def task_list(ts):
    """Flattens a task, an ObliviousTask, or any (nested) iterable of them into a list of task-like values.

    Iterators are consumed once, so the result can be passed to utilization(), implicit() and feasible() in turn.
    """
    if _is_task_like(ts):
        return [ts]
    return [x for sub in ts for x in task_list(sub)]


def utilization(ts):
    """Exact total utilization of a task, an ObliviousTask, or any (nested) collection of them."""
    if _is_task_like(ts):
        return ts.utilization()
    return sum((utilization(x) for x in ts), Fraction(0))


def implicit(ts):
    """Tests whether every task in ts has an implicit deadline."""
    if _is_task_like(ts):
        return ts.implicit()
    return all(implicit(x) for x in ts)


def feasible(ts):
    """Tests whether every task in ts is feasible on its own, i.e. its (inflated) cost fits into its period."""
    if _is_task_like(ts):
        return ts.feasible()
    return all(feasible(x) for x in ts)

"""
This module contains the resource model: the two kinds of request (mutually exclusive and read/write) and the System
class, which stores the requests of every task to every resource and runs protocol analyses on them.
"""

import enum

from lib import Request, RwPair, TaskRequest


class RequestKind(enum.Enum):
    """Kind of the requests stored in a System.

    MUTEX systems store a single Request per task and resource. READ_WRITE systems store an RwPair of Requests, whose
    read and write halves are always handled independently.
    """
    MUTEX = 'mutex'
    READ_WRITE = 'rw'

    def new_slot(self):
        """Returns an empty request slot for a single task and resource."""
        if self is RequestKind.MUTEX:
            return Request()
        return RwPair(Request(), Request())

    def transpose(self, column):
        """Collects the slots of one resource (in task order) into its usage.

        The usage of a MUTEX resource is a list of TaskRequest, one per task. The usage of a READ_WRITE resource is an
        RwPair of such lists, built from the read and the write halves respectively.
        """
        if self is RequestKind.MUTEX:
            return [TaskRequest(task, slot) for task, slot in enumerate(column)]
        return RwPair([TaskRequest(task, slot.read) for task, slot in enumerate(column)],
                      [TaskRequest(task, slot.write) for task, slot in enumerate(column)])

    def sort_by_length(self, usage):
        """Sorts a resource usage in place by decreasing request length."""
        if self is RequestKind.MUTEX:
            _sort_requests(usage)
        else:
            _sort_requests(usage.read)
            _sort_requests(usage.write)


def _sort_requests(requests):
    requests.sort(key=lambda tr: tr.req.length, reverse=True)


class System(object):
    """Task system with a set of requests.

    The task set is fixed at construction. Resources are added one at a time, and requests are merged into the
    existing ones, never overwritten. All construction has to be done before running any analysis.

    Attributes:
        tasks: Tuple of tasks; indices into it identify tasks everywhere else.
        kind: The RequestKind of the stored requests.
        num_rsrc: Number of resources in the system.
        reqs: One list of request slots per task, each of length num_rsrc.
    """
    def __init__(self, tasks, kind=RequestKind.MUTEX):
        self.tasks = tuple(tasks)
        self.kind = kind
        self.num_rsrc = 0
        self.reqs = [[] for _ in self.tasks]

    @property
    def num_tasks(self):
        return len(self.tasks)

    def task(self, i):
        """Retrieves the task at index i."""
        return self.tasks[i]

    def reqs_by(self, i):
        """Retrieves the request slots of the task at index i, indexed by resource."""
        return self.reqs[i]

    def add_rsrc(self):
        """Creates a new resource with no requests and returns its index."""
        rsrc = self.num_rsrc
        self.num_rsrc += 1
        for slots in self.reqs:
            slots.append(self.kind.new_slot())
        return rsrc

    def _slot(self, task, rsrc):
        if not 0 <= task < self.num_tasks:
            raise IndexError('task index %d out of range for %d tasks' % (task, self.num_tasks))
        if not 0 <= rsrc < self.num_rsrc:
            raise IndexError('resource index %d out of range for %d resources' % (rsrc, self.num_rsrc))
        return self.reqs[task][rsrc]

    def _require(self, kind):
        if self.kind is not kind:
            raise TypeError('operation requires a %s system, not %s' % (kind.name, self.kind.name))

    def add_req(self, task, rsrc, req):
        """Merges the mutex requests req of the task at index task to the resource at index rsrc."""
        self._require(RequestKind.MUTEX)
        self._slot(task, rsrc).merge(req)

    def add_read(self, task, rsrc, req):
        """Merges the read requests req of the task at index task to the resource at index rsrc."""
        self._require(RequestKind.READ_WRITE)
        self._slot(task, rsrc).read.merge(req)

    def add_write(self, task, rsrc, req):
        """Merges the write requests req of the task at index task to the resource at index rsrc."""
        self._require(RequestKind.READ_WRITE)
        self._slot(task, rsrc).write.merge(req)

    def by_rsrc(self):
        """Returns the usage of each resource by all tasks, indexed by resource.

        This differs from reqs_by() in that the latter returns the uses of each resource from a given task.
        """
        return [self.kind.transpose([slots[rsrc] for slots in self.reqs]) for rsrc in range(self.num_rsrc)]

    def run(self, analyzer):
        """Runs an analyzer on the system and returns its results for each task, in task order.

        Every resource usage is sorted by decreasing request length first. Then the analyzer's pass runs once per
        task, and its post-processing step once over all results.
        """
        if analyzer.kind is not self.kind:
            raise TypeError('%s analyzes %s systems, not %s'
                            % (analyzer.name, getattr(analyzer.kind, 'name', analyzer.kind), self.kind.name))

        by_rsrc = self.by_rsrc()
        for usage in by_rsrc:
            self.kind.sort_by_length(usage)

        out = [analyzer.pass_task(task, self, by_rsrc) for task in range(self.num_tasks)]
        analyzer.post(self, out)
        return out

    def as_mutex(self):
        """Collapses a read/write system into a mutex system.

        The resulting system has the same tasks, resources and number of requests; read and write requests both
        become mutually exclusive requests to the same resource. Each mutex slot carries the summed counts of both
        halves and the longer of their two lengths, so the shorter half is over-approximated.
        """
        self._require(RequestKind.READ_WRITE)
        out = System(self.tasks, RequestKind.MUTEX)
        for _ in range(self.num_rsrc):
            out.add_rsrc()
        for task, slots in enumerate(self.reqs):
            for rsrc, pair in enumerate(slots):
                out.add_req(task, rsrc, pair.read)
                out.add_req(task, rsrc, pair.write)
        return out

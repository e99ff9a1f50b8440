"""
This module contains the s-oblivious blocking analyses of the supported multiprocessor locking protocols.

Every analyzer computes, for each task of a System, a bound on the blocking its requests may suffer. The bound of a
task is computed per resource and summed over the resources the task accesses. Each class supports exactly one
RequestKind; protocols with a read/write variant have one class per kind.
"""

from lib import Bound, Limits, ObliviousData, bound_blocking
from resources import RequestKind


class ObliviousAnalyzer(object):
    """An analyzer that obtains blocking bounds for requests of a given kind from a System.

    Subclasses implement pass_task() and may override post().

    Attributes:
        kind: The RequestKind of the systems this analyzer works on.
        name: Name of the protocol.
    """
    kind = None
    name = None

    def pass_task(self, task, sys, by_rsrc):
        """Runs a single analysis pass on the task at index task of system sys.

        Requests are available in task order from sys.reqs_by() and in resource order from by_rsrc, whose usages
        are sorted by decreasing length. This method must not modify either.

        Returns:
            An ObliviousData object for the task.
        """
        raise NotImplementedError

    def post(self, sys, out):
        """Runs a final pass on the results of every task, in task order. The default implementation does nothing."""

    def __repr__(self):
        return '%s(%s)' % (type(self).__name__, self.name)


class _MultiCpu(ObliviousAnalyzer):

    def __init__(self, num_cpus):
        self.num_cpus = num_cpus


def _donate(sys, out):
    """Adds the priority donation term to the total blocking of every task.

    A task may be delayed by the arrival blocking of any other task with equal or higher priority (lower or equal
    priority value). All terms are computed before any total is updated.
    """
    donations = []
    for task in range(sys.num_tasks):
        prio = sys.task(task).priority
        donations.append(max((out[i].arrival for i in range(sys.num_tasks)
                              if i != task and sys.task(i).priority <= prio), default=Bound()))
    for data, donation in zip(out, donations):
        data.total = data.total + donation


class FlexibleMulti(ObliviousAnalyzer):
    """Block, Leontyev, Brandenburg and Anderson's Flexible Multiprocessor Locking Protocol (FMLP), short requests only.

    See [1].
    """
    kind = RequestKind.MUTEX
    name = 'FMLP'

    def pass_task(self, task, sys, by_rsrc):
        total = Bound()
        for req, usage in zip(sys.reqs_by(task), by_rsrc):
            if req.num == 0:
                continue
            # every other task may block once per request
            limits = Limits(total=sys.num_tasks - 1, per_task=1)
            total += bound_blocking(usage, task, limits * req.num)
        return ObliviousData.from_total(total)


class OptimalFifo(_MultiCpu):
    """The global version of Ahmed and Anderson's Optimal Locking Protocol for FIFO (OLP-F), see [2]."""
    kind = RequestKind.MUTEX
    name = 'OLP-F'

    def pass_task(self, task, sys, by_rsrc):
        total = Bound()
        for req, usage in zip(sys.reqs_by(task), by_rsrc):
            if req.num == 0:
                continue
            # every other scheduled task may block once per request
            limits = Limits(total=self.num_cpus - 1, per_task=1)
            total += bound_blocking(usage, task, limits * req.num)
        return ObliviousData.from_total(total)


class RwOptimalFifo(_MultiCpu):
    """The read/write variant of OLP-F (RW-OLP-F), see [2]."""
    kind = RequestKind.READ_WRITE
    name = 'RW-OLP-F'

    def pass_task(self, task, sys, by_rsrc):
        if self.num_cpus <= 1:
            return ObliviousData()

        m = self.num_cpus
        total = Bound()
        for pair, usage in zip(sys.reqs_by(task), by_rsrc):
            read, write = pair.read, pair.write
            if read.num == 0 and write.num == 0:
                continue
            reads, writes = usage.read, usage.write

            # longest single read
            rbound = bound_blocking(reads, task, Limits(1, 1))

            rtotal = Bound()
            if read.num > 0:
                rtotal = bound_blocking(writes, task, Limits(write.num, write.num))
                if rbound.length > 0:
                    rtotal += Bound(rbound.length - 1, rbound.count) * read.num

            wsingle = Bound()
            if write.num > 0:
                case1_limits = Limits(m - 1, 1)
                case1 = bound_blocking(writes, task, case1_limits)

                if case1.count < case1_limits.total or rbound.length == 0:
                    # not enough writers to fill the write queue, or no other readers
                    wsingle = case1 + (case1.count + 1) * rbound
                else:
                    # neither accounting dominates the other
                    case2 = bound_blocking(writes, task, Limits(m - 2, 1))
                    wsingle = max(case1 + (m - 2) * rbound, case2 + (m - 1) * rbound)

            total += rtotal + wsingle * write.num
        return ObliviousData.from_total(total)


class GlobalOm(_MultiCpu):
    """The global version of Brandenburg and Anderson's O(m) Locking Protocol (OMLP), see the appendix of [3]."""
    kind = RequestKind.MUTEX
    name = 'OMLP'

    def pass_task(self, task, sys, by_rsrc):
        total = Bound()
        for req, usage in zip(sys.reqs_by(task), by_rsrc):
            if req.num == 0:
                continue

            nreqs = sum(1 for tr in usage if tr.req.num > 0)
            if nreqs <= self.num_cpus + 1:
                # only the FIFO queue is ever used
                limits = Limits(total=nreqs - 1, per_task=1)
            else:
                limits = Limits(total=2 * self.num_cpus - 1, per_task=2)

            total += bound_blocking(usage, task, limits * req.num)
        return ObliviousData.from_total(total)


class SingleClusterOm(_MultiCpu):
    """The clustered OMLP (C-OMLP) of [4], specialized for a single cluster of num_cpus processors."""
    kind = RequestKind.MUTEX
    name = 'C-OMLP'

    def pass_task(self, task, sys, by_rsrc):
        out = ObliviousData()
        for req, usage in zip(sys.reqs_by(task), by_rsrc):
            if req.num == 0:
                continue

            limits = Limits(total=self.num_cpus - 1, per_task=1)
            total = bound_blocking(usage, task, limits * req.num)

            if req.num == 1:
                arrival = total
            else:
                arrival = bound_blocking(usage, task, limits)
            # our own request counts too
            arrival = arrival + Bound.single(req.length)

            out.total += total
            out.arrival = max(out.arrival, arrival)
        return out

    def post(self, sys, out):
        _donate(sys, out)


class RwSingleClusterOm(_MultiCpu):
    """The read/write variant of C-OMLP (CRW-OMLP) of [4], specialized for a single cluster."""
    kind = RequestKind.READ_WRITE
    name = 'CRW-OMLP'

    def pass_task(self, task, sys, by_rsrc):
        if self.num_cpus == 1:
            return ObliviousData()

        m = self.num_cpus
        out = ObliviousData()
        for pair, usage in zip(sys.reqs_by(task), by_rsrc):
            read, write = pair.read, pair.write
            if read.num == 0 and write.num == 0:
                continue
            reads, writes = usage.read, usage.write

            wlimits = Limits(total=read.num + write.num * (m - 1), per_task=read.num + write.num)
            wtotal = bound_blocking(writes, task, wlimits)

            rlimit = min(wlimits.total, wtotal.count + write.num)
            rtotal = bound_blocking(reads, task, Limits(rlimit, rlimit))

            # arrival blocking of a single write request
            if write.num == 1 and read.num == 0:
                warrival = wtotal + rtotal
            elif write.num > 0:
                warr = bound_blocking(writes, task, Limits(m - 1, 1))
                rlimit = min(m - 1, warr.count + 1)
                warrival = warr + bound_blocking(reads, task, Limits(rlimit, rlimit))
            else:
                warrival = Bound()

            # arrival blocking of a single read request
            if read.num == 1 and write.num == 0:
                rarrival = wtotal + rtotal
            elif read.num > 0:
                warr = bound_blocking(writes, task, Limits(1, 1))
                rlimit = min(warr.count, 1)
                rarrival = warr + bound_blocking(reads, task, Limits(rlimit, rlimit))
            else:
                rarrival = Bound()

            if write.num > 0:
                warrival = warrival + Bound.single(write.length)
            if read.num > 0:
                rarrival = rarrival + Bound.single(read.length)

            out.total += rtotal + wtotal
            out.arrival = max(out.arrival, rarrival + warrival)
        return out

    def post(self, sys, out):
        _donate(sys, out)


"""
Literature:
[1] Block, Leontyev, Brandenburg, Anderson
    A Flexible Real-Time Locking Protocol for Multiprocessors (RTCSA 2007)
[2] Ahmed, Anderson
    Optimal Multiprocessor Locking Protocols Under FIFO Scheduling (ECRTS 2023)
[3] Brandenburg, Anderson
    Optimality Results for Multiprocessor Real-Time Locking (RTSS 2010)
[4] Brandenburg, Anderson
    Real-Time Resource-Sharing under Clustered Scheduling: Mutex, Reader-Writer, and k-Exclusion Locks (EMSOFT 2011)
"""

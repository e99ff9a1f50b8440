"""
This module offers the synthesis of random task sets and of random resource requests for them. It makes use of the
classes defined in modules lib and resources.
"""

import math

import numpy as np
import numpy.random as nprd

from lib import Request, Task, TaskSet
from resources import RequestKind


def randfixedsum(n, u, nsets, a=0., b=1.):
    """Randomly and uniformly generates vectors with a specified sum and values in a specified interval.

    All courtesy to P. Emberson, R. Stafford, R. Davis for the randfixedsum algorithm and their implementation in
    Python.

    Paper: [1]
    Matlab: https://www.mathworks.com/matlabcentral/fileexchange/9700-random-vectors-with-fixed-sum
    Python: https://github.com/brandenburg/schedcat/blob/master/schedcat/generator/generator_emstada.py

    Args:
        n: Size of each returned vector.
        u: Float value every vector sums up to.
        nsets: Number of vectors that are returned.
        a: Lower bound for every element in all vectors.
        b: Upper bound for every element in all vectors.

    Returns:
        An array of nsets vectors, each containing n float values that lie between a and b and sum up to u.
    """

    # Check the arguments.
    if (n != round(n)) or (nsets != round(nsets)) or (nsets < 0) or (n < 1):
        raise ValueError('n must be a positive whole number and nsets a non-negative integer.')
    if (u < n * a) or (u > n * b) or (a >= b):
        raise ValueError('Inequalities n * a <= u <= n * b and a < b must hold (n=%s, u=%s, a=%s, b=%s).'
                         % (n, u, a, b))

    # deal with n=1 case
    if n == 1:
        return np.tile(np.array([u]), [nsets, 1])

    s = (u - n * a) / (b - a)  # rescaled to the unit cube
    k = min(np.floor(s), n - 1)  # must have 0 <= k <= n - 1
    step = 1 if k < (k-n+1) else -1
    s1 = s - np.arange(k, (k - n + 1) + step, step)
    step = 1 if (k+n) < (k-n+1) else -1
    s2 = np.arange((k + n), (k + 1) + step, step) - s

    tiny = np.finfo(float).tiny
    huge = np.finfo(float).max

    w = np.zeros((n, n + 1))
    w[0, 1] = huge
    t = np.zeros((n - 1, n))

    for i in np.arange(2, (n+1)):
        tmp1 = w[i - 2, np.arange(1, (i + 1))] * s1[np.arange(0, i)] / float(i)
        tmp2 = w[i - 2, np.arange(0, i)] * s2[np.arange((n - i), n)] / float(i)
        w[i - 1, np.arange(1, (i + 1))] = tmp1 + tmp2
        tmp3 = w[i - 1, np.arange(1, (i + 1))] + tiny
        tmp4 = np.array((s2[np.arange((n - i), n)] > s1[np.arange(0, i)]))
        t[i - 2, np.arange(0, i)] = (tmp2 / tmp3) * tmp4 + (1 - tmp1 / tmp3) * (np.logical_not(tmp4))

    m = nsets
    x = np.zeros((n, m))
    if m == 0:
        return np.transpose(x)
    rt = nprd.uniform(size=(n - 1, m))  # rand simplex type
    rs = nprd.uniform(size=(n - 1, m))  # rand position in simplex
    s = np.repeat(s, m)
    j = np.repeat(int(k + 1), m)
    sm = np.repeat(0., m)
    pr = np.repeat(1., m)

    for i in np.arange(n-1, 0, -1):  # iterate through dimensions
        e = (rt[(n-i)-1, ...] <= t[i-1, j-1])  # decide which direction to move in this dimension (1 or 0)
        sx = rs[(n-i)-1, ...] ** (1/float(i))  # next simplex coord
        sm = sm + (1-sx) * pr * s/float(i+1)
        pr = sx * pr
        x[(n-i)-1, ...] = sm + pr * e
        s = s - e
        j = j - e  # change transition table column if required

    x[n-1, ...] = sm + pr * s

    # iterated in fixed dimension order but needs to be randomised
    # permute x row order within each column
    for i in range(0, m):
        x[..., i] = x[nprd.permutation(n), i]

    x = (b - a)*x + a
    return np.transpose(x)


def _uniform_int(bounds):
    """Uniformly picks an integer from the inclusive range bounds = (low, high)."""
    low, high = bounds
    return int(nprd.randint(low, high + 1))


def rfsgen(set_id, num_cpus, norm_util, num_tasks, periods) -> TaskSet:
    """Generates an implicit-deadline task set with EDF priorities.

    Task utilizations are picked uniformly at random from all vectors summing up to the desired total, using
    randfixedsum.

    Args:
        set_id: Identifier for newly generated task set.
        num_cpus: Number of processors in the system.
        norm_util: Desired normalized (per-core) system utilization, in [0, 1].
        num_tasks: Inclusive range (low, high) from which the number of tasks is picked uniformly.
        periods: Inclusive range (low, high) from which every task's period is picked uniformly.

    Returns:
        A TaskSet object whose tasks have cost ceil(period * utilization).
    """
    if not 0. <= norm_util <= 1.:
        raise ValueError('norm_util must be in [0, 1], got %s' % norm_util)

    n = _uniform_int(num_tasks)
    utils = randfixedsum(n=n, u=norm_util * num_cpus, nsets=1)[0]

    tasks = []
    for u in utils:
        period = _uniform_int(periods)
        cost = min(int(math.ceil(period * u)), period)
        tasks.append(Task(cost=cost, period=period).edf())
    return TaskSet(set_id, tasks)


def synth_requests(sys, num_rsrc, prob_acc, num, length, prob_write=None):
    """Adds num_rsrc new resources to sys, with random requests for each of them.

    Each task accesses each new resource independently with probability prob_acc. An accessing task issues a number
    of requests picked uniformly from num, each with a length picked uniformly from length, but it never requests
    more than its cost in total; the generation stops as soon as the cost is exhausted. Existing resources and
    requests of sys are left untouched.

    Args:
        sys: A System of either RequestKind.
        num_rsrc: Number of resources to add.
        prob_acc: Probability that a task accesses a resource.
        num: Inclusive range (low, high) for the number of requests per access.
        length: Inclusive range (low, high) for the length of a single request.
        prob_write: Probability that a request is a write request. Required for read/write systems only.
    """
    if not 0. <= prob_acc <= 1.:
        raise ValueError('prob_acc must be in [0, 1], got %s' % prob_acc)
    if sys.kind is RequestKind.READ_WRITE and (prob_write is None or not 0. <= prob_write <= 1.):
        raise ValueError('prob_write must be in [0, 1] for read/write systems, got %s' % prob_write)

    for _ in range(num_rsrc):
        rsrc = sys.add_rsrc()

        for task in range(sys.num_tasks):
            if nprd.random() >= prob_acc:
                continue

            nonreq = sys.task(task).cost
            for _ in range(_uniform_int(num)):
                req_len = _uniform_int(length)
                if req_len <= nonreq:
                    nonreq -= req_len
                    request = Request(num=1, length=req_len)
                else:
                    # shortened, and no further requests once the cost is used up
                    request = Request(num=1, length=req_len - nonreq)
                    nonreq = 0

                if sys.kind is RequestKind.MUTEX:
                    sys.add_req(task, rsrc, request)
                elif nprd.random() < prob_write:
                    sys.add_write(task, rsrc, request)
                else:
                    sys.add_read(task, rsrc, request)

                if nonreq == 0:
                    break


"""
Literature:
[1] Emberson, Stafford, Davis
    Techniques For The Synthesis Of Multiprocessor Tasksets
"""

"""
Experiment harness: evaluates the schedulability of random task sets with shared resources under every supported
locking protocol, for a sweep of normalized utilizations, and prints or stores the ratio of schedulable task sets.

Run `lockbench --help` (or `python evaluation.py --help`) for the available commands.
"""

import argparse
import itertools
import multiprocessing as mp
import os
import sys
from time import time

import matplotlib.pyplot as plt
import numpy as np
import numpy.random as nprd
import scipy.stats as stats

import analysis as ana
import synthesis as synth
from protocols import FlexibleMulti, GlobalOm, OptimalFifo, RwOptimalFifo, RwSingleClusterOm, SingleClusterOm
from resources import RequestKind, System


##############
# Parameters #
##############

LENGTH_CLASSES = ('short', 'medium', 'long')

# Periods in microseconds
PERIODS = {
    'short': (3000, 33000),
    'medium': (10000, 100000),
    'long': (50000, 500000),
}

# Request lengths in microseconds
LENGTHS = {
    'short': (1, 15),
    'medium': (1, 100),
    'long': (5, 1280),
}

REQUESTS_PER_ACCESS = (1, 5)
MAX_TASKS = 150
PASSES = 10000

# Parameter grid of the mutex-all and rw-all commands
NUM_CPUS = [4, 8, 16]
PROB_ACC = [0.1, 0.25, 0.5]
NUM_RSRC_L2 = [-2, -1, 0, 1]
PROB_WRITE = [0.1, 0.2, 0.3, 0.5, 0.7]


def linear_utils():
    """Normalized utilizations 0.2, 0.3, ..., 0.9."""
    return [x / 10. for x in range(2, 10)]


def log_utils():
    """Normalized utilizations 1 - exp(-x/8) for x = 1, ..., 32, denser towards full utilization."""
    return [float(-np.expm1(-x / 8.)) for x in range(1, 33)]


def num_rsrc_for(num_cpus, l2):
    """Number of resources as num_cpus scaled by 2**l2."""
    return num_cpus >> -l2 if l2 < 0 else num_cpus << l2


#############
# Protocols #
#############

def mutex_protocols(num_cpus):
    return [GlobalOm(num_cpus), SingleClusterOm(num_cpus), OptimalFifo(num_cpus), FlexibleMulti()]


def rw_protocols(num_cpus):
    return [RwSingleClusterOm(num_cpus), RwOptimalFifo(num_cpus)]


def rw_mutex_protocols(num_cpus):
    """Mutex protocols compared against on read/write systems, run on the collapsed mutex system."""
    return [OptimalFifo(num_cpus)]


def _passed(sys, proto, num_cpus):
    result = ana.is_schedulable(sys, proto, num_cpus)
    if result is None:
        raise ValueError('generated task set does not have implicit deadlines')
    return int(result)


class MutexStatistic(object):
    """Counts the task sets deemed schedulable by each mutex protocol.

    Attributes:
        num_cpus: Number of processors.
        num_rsrc: Number of resources generated per task set.
        prob_acc: Probability of access, independently for each task and resource.
        lengths: Inclusive range of request lengths.
        protos: List of analyzers.
    """
    def __init__(self, num_cpus, num_rsrc, prob_acc, lengths):
        self.num_cpus = num_cpus
        self.num_rsrc = num_rsrc
        self.prob_acc = prob_acc
        self.lengths = lengths
        self.protos = mutex_protocols(num_cpus)

    @property
    def names(self):
        return [proto.name for proto in self.protos]

    def new_result(self):
        return [0] * len(self.protos)

    def collect(self, tasks, result):
        sys = System(tasks, RequestKind.MUTEX)
        synth.synth_requests(sys, self.num_rsrc, self.prob_acc, REQUESTS_PER_ACCESS, self.lengths)
        for i, proto in enumerate(self.protos):
            result[i] += _passed(sys, proto, self.num_cpus)


class RwStatistic(object):
    """Counts the task sets deemed schedulable by each read/write protocol and by the mutex baselines.

    Results are ordered as the mutex baselines first, then the read/write protocols.
    """
    def __init__(self, num_cpus, num_rsrc, prob_acc, lengths, prob_write):
        self.num_cpus = num_cpus
        self.num_rsrc = num_rsrc
        self.prob_acc = prob_acc
        self.lengths = lengths
        self.prob_write = prob_write
        self.mutex_protos = rw_mutex_protocols(num_cpus)
        self.protos = rw_protocols(num_cpus)

    @property
    def names(self):
        return [proto.name for proto in self.mutex_protos + self.protos]

    def new_result(self):
        return [0] * (len(self.mutex_protos) + len(self.protos))

    def collect(self, tasks, result):
        sys = System(tasks, RequestKind.READ_WRITE)
        synth.synth_requests(sys, self.num_rsrc, self.prob_acc, REQUESTS_PER_ACCESS, self.lengths,
                             prob_write=self.prob_write)

        offset = len(self.mutex_protos)
        for i, proto in enumerate(self.protos):
            result[offset + i] += _passed(sys, proto, self.num_cpus)

        mutex_sys = sys.as_mutex()
        for i, proto in enumerate(self.mutex_protos):
            result[i] += _passed(mutex_sys, proto, self.num_cpus)


###########
# Scripts #
###########

def _sweep_point(job):
    """Runs all passes for a single utilization point. Executed in a worker process."""
    stat, num_cpus, periods, util, passes, seed = job
    nprd.seed(seed)  # fresh entropy per worker if seed is None
    result = stat.new_result()
    for i in range(passes):
        tasks = synth.rfsgen(i, num_cpus, util, (2 * num_cpus, MAX_TASKS), periods)
        stat.collect(tasks, result)
    return result


def sweep(stat, num_cpus, periods, utils, passes=PASSES, processes=None, seed=None):
    """Evaluates stat on passes random task sets for every normalized utilization in utils.

    Utilization points are distributed over a multiprocessing pool; processes == 1 runs them sequentially instead.

    Returns:
        A list with one result of stat per utilization point, in the same order as utils.
    """
    seeds = [None if seed is None else seed + k for k in range(len(utils))]
    jobs = [(stat, num_cpus, periods, util, passes, s) for util, s in zip(utils, seeds)]
    if processes == 1:
        return [_sweep_point(job) for job in jobs]
    with mp.Pool(processes) as pool:
        return pool.map(_sweep_point, jobs)


def format_table(names, utils, results, passes):
    """Tab-separated table with one column per protocol and one row per utilization point."""
    lines = ['norm_util\t' + '\t'.join(names)]
    for util, result in zip(utils, results):
        lines.append('\t'.join([str(util)] + [str(count / passes) for count in result]))
    return '\n'.join(lines)


def run_statistic(stat, num_cpus, periods, utils, passes=PASSES, processes=None, seed=None):
    """Runs a sweep and returns its formatted table."""
    start = time()
    results = sweep(stat, num_cpus, periods, utils, passes, processes, seed)
    stop = time()
    print('%s (m=%d): %.3fs' % (type(stat).__name__, num_cpus, stop - start), file=sys.stderr)
    return format_table(stat.names, utils, results, passes)


def run_mutex_all(out_dir='.', passes=PASSES, processes=None, seed=None):
    """Generates result files for all mutex protocols over the whole parameter grid."""
    utils = linear_utils()
    for num_cpus in NUM_CPUS:
        for length, prob_acc, period, l2 in itertools.product(LENGTH_CLASSES, PROB_ACC, LENGTH_CLASSES, NUM_RSRC_L2):
            num_rsrc = num_rsrc_for(num_cpus, l2)
            stat = MutexStatistic(num_cpus, num_rsrc, prob_acc, LENGTHS[length])
            out_name = 'mutex-%d-%s-%s-%s-%d.dat' % (num_cpus, period, length, prob_acc, num_rsrc)
            table = run_statistic(stat, num_cpus, PERIODS[period], utils, passes, processes, seed)
            _write(os.path.join(out_dir, out_name), table)


def run_rw_all(out_dir='.', passes=PASSES, processes=None, seed=None):
    """Generates result files for all read/write protocols over the whole parameter grid."""
    utils = linear_utils()
    for num_cpus in NUM_CPUS:
        for length, prob_acc, period, l2, prob_write in itertools.product(
                LENGTH_CLASSES, PROB_ACC, LENGTH_CLASSES, NUM_RSRC_L2, PROB_WRITE):
            num_rsrc = num_rsrc_for(num_cpus, l2)
            stat = RwStatistic(num_cpus, num_rsrc, prob_acc, LENGTHS[length], prob_write)
            out_name = 'rw-%d-%s-%s-%s-%d-%s.dat' % (num_cpus, period, length, prob_acc, num_rsrc, prob_write)
            table = run_statistic(stat, num_cpus, PERIODS[period], utils, passes, processes, seed)
            _write(os.path.join(out_dir, out_name), table)


def _write(path, table):
    with open(path, 'w') as f:
        f.write(table)
    print('wrote %s' % path, file=sys.stderr)


# Visualization
###############

def read_table(path):
    """Reads a table written by format_table().

    Returns:
        A tuple (names, utils, rates), where rates has one column per protocol.
    """
    with open(path) as f:
        header = f.readline().rstrip('\n').split('\t')
    data = np.loadtxt(path, delimiter='\t', skiprows=1, ndmin=2)
    return header[1:], data[:, 0], data[:, 1:]


def clopper_pearson(rates, passes, alpha=0.05):
    """Exact (Clopper-Pearson) confidence interval of schedulability ratios measured over passes task sets."""
    k = np.rint(np.asarray(rates, dtype=float) * passes)
    with np.errstate(invalid='ignore'):
        lower = np.where(k > 0, stats.beta.ppf(alpha / 2, k, passes - k + 1), 0.)
        upper = np.where(k < passes, stats.beta.ppf(1 - alpha / 2, k + 1, passes - k), 1.)
    return lower, upper


def plot_schedulability_rates(path, passes=PASSES, out=None):
    """Plot the schedulability rates of one result file, with 95% confidence bands."""
    modes = [
        # linestyle, marker
        ('dashed', 'o'),
        ('dashed', 'd'),
        ('dashed', 's'),
        ('dashed', '^'),
        ('dashed', 'D'),
        ('dashed', 'v')
    ]

    names, utils, rates = read_table(path)
    fig = plt.figure(figsize=(12, 6), dpi=300)
    fig.suptitle('%s (n=%d)' % (os.path.basename(path), passes))
    ax1 = fig.add_subplot(111)
    for i, name in enumerate(names):
        linestyle, marker = modes[i % len(modes)]
        line, = ax1.plot(utils, 100 * rates[:, i], label=name, linestyle=linestyle, marker=marker)
        lower, upper = clopper_pearson(rates[:, i], passes)
        ax1.fill_between(utils, 100 * lower, 100 * upper, color=line.get_color(), alpha=0.2)
    ax1.set_xlabel('Normalized utilization')
    ax1.set_ylabel('Percentage of task sets schedulable')
    ax1.set_ylim(-5, 105)
    ax1.set_yticks([k * 20 for k in range(6)])
    ax1.minorticks_on()
    ax1.grid(which='both', linestyle='dashed')
    plt.legend(loc='lower left')
    if out is None:
        plt.show()
    else:
        plt.savefig(out)
    plt.close(fig)


#################
# Main Function #
#################

def build_parser():
    parser = argparse.ArgumentParser(prog='lockbench', description=__doc__.strip().splitlines()[0])
    parser.add_argument('--passes', type=int, default=PASSES, help='task sets per utilization point')
    parser.add_argument('--seed', type=int, default=None, help='base seed of the random generator')
    parser.add_argument('--processes', type=int, default=None, help='worker processes (default: all cores)')
    commands = parser.add_subparsers(dest='command', required=True)

    def single_run_args(p):
        p.add_argument('-m', dest='num_cpus', type=int, required=True, help='number of CPUs in system')
        p.add_argument('-p', dest='periods', choices=LENGTH_CLASSES, required=True, help='task period length class')
        p.add_argument('-r', dest='num_rsrc', type=int, required=True, help='number of resources in system')
        p.add_argument('-a', dest='prob_acc', type=float, required=True,
                       help='probability of access (indep. for each task/resource pair)')
        p.add_argument('-l', dest='lengths', choices=LENGTH_CLASSES, required=True,
                       help='resource access duration class')
        p.add_argument('-u', dest='log_nuf', action='store_true',
                       help='generate log-scale utilizations instead of linear-scale')

    single_run_args(commands.add_parser('mutex', help='test all protocols for mutex access'))
    rw = commands.add_parser('rw', help='test all protocols for read-write access')
    single_run_args(rw)
    rw.add_argument('-w', dest='prob_write', type=float, required=True,
                    help='probability that an access will be counted as write')

    for name, what in (('mutex-all', 'mutex'), ('rw-all', 'read-write')):
        p = commands.add_parser(name, help='generate valid combinations for all %s protocols' % what)
        p.add_argument('--out-dir', default='.', help='directory for the result files')

    plot = commands.add_parser('plot', help='plot result files')
    plot.add_argument('files', nargs='+')
    plot.add_argument('--out-dir', default=None, help='save figures as PNG here instead of showing them')
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    options = dict(passes=args.passes, processes=args.processes, seed=args.seed)

    if args.command in ('mutex', 'rw'):
        lengths = LENGTHS[args.lengths]
        if args.command == 'mutex':
            stat = MutexStatistic(args.num_cpus, args.num_rsrc, args.prob_acc, lengths)
        else:
            stat = RwStatistic(args.num_cpus, args.num_rsrc, args.prob_acc, lengths, args.prob_write)
        utils = log_utils() if args.log_nuf else linear_utils()
        print(run_statistic(stat, args.num_cpus, PERIODS[args.periods], utils, **options))
    elif args.command == 'mutex-all':
        run_mutex_all(args.out_dir, **options)
    elif args.command == 'rw-all':
        run_rw_all(args.out_dir, **options)
    elif args.command == 'plot':
        for path in args.files:
            out = None
            if args.out_dir is not None:
                out = os.path.join(args.out_dir, os.path.splitext(os.path.basename(path))[0] + '.png')
            plot_schedulability_rates(path, args.passes, out)


if __name__ == '__main__':
    main()

"""
Command-line interface for SymForge.

Provides commands for:
- Running symbolic regression on a CSV dataset
- Displaying the primitive set
"""

import logging
import random
import sys
import time

import click

from symforge import __version__
from symforge.data import Dataset, Problem, Range
from symforge.errors import SymForgeError
from symforge.evolution import GeneticAlgorithmConfig, GeneticProgrammingAlgorithm
from symforge.expression import (
    ARITHMETIC,
    InfixFormatter,
    Interpreter,
    NodeType,
    PrimitiveSet,
    format_primitive_set,
    parse_primitive_set_config,
)
from symforge.metrics import (
    ERROR_METRICS,
    linear_scaling,
    mean_absolute_error,
    normalized_mean_squared_error,
    r2_score,
)
from symforge.operators import (
    BalancedTreeCreator,
    ChangeFunctionMutation,
    ChangeVariableMutation,
    ErrorEvaluator,
    GrowTreeCreator,
    InsertSubtreeMutation,
    MultiMutation,
    NormalCoefficientInitializer,
    OnePointMutation,
    RemoveSubtreeMutation,
    ReplaceSubtreeMutation,
    SubtreeCrossover,
    UniformTreeInitializer,
    parse_generator,
    parse_reinserter,
    parse_selector,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("symforge")

SYMBOLS = (
    "add, sub, mul, div, exp, log, square, sqrt, cbrt, sin, cos, tan, asin, acos, "
    "atan, sinh, cosh, tanh, abs, aq, ceil, floor, fmin, fmax, log1p, logabs, sqrtabs"
)


def build_primitive_config(enable: str | None, disable: str | None) -> NodeType:
    """Arithmetic primitives plus ``enable`` minus ``disable``."""
    config = ARITHMETIC
    if enable:
        config |= parse_primitive_set_config(enable)
    if disable:
        config &= ~parse_primitive_set_config(disable)
    return config


def infer_test_range(training: Range, rows: int) -> Range:
    """Rows before the training range, else after it, else the first row."""
    if training.start > 0:
        return Range(0, training.start)
    if training.end < rows:
        return Range(training.end, rows)
    return Range(0, 1)


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
def main(verbose: bool) -> None:
    """SymForge - Symbolic regression by genetic programming."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


@main.command()
@click.option("--enable-symbols", default=None, help=f"Comma-separated symbols to enable ({SYMBOLS})")
@click.option("--disable-symbols", default=None, help="Comma-separated symbols to disable")
def primitives(enable_symbols: str | None, disable_symbols: str | None) -> None:
    """Display the primitive set used by the algorithm."""
    try:
        config = build_primitive_config(enable_symbols, disable_symbols)
    except SymForgeError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(format_primitive_set(PrimitiveSet(config)))


@main.command()
@click.option("--dataset", "dataset_path", required=True, type=click.Path(exists=True, dir_okay=False), help="Dataset file name (csv)")
@click.option("--target", required=True, help="Name of the target variable")
@click.option("--shuffle", is_flag=True, help="Shuffle the input data")
@click.option("--standardize", is_flag=True, help="Standardize the training partition (zero mean, unit variance)")
@click.option("--train", default=None, help="Training range start:end. Default: first 2/3 of the rows")
@click.option("--test", default=None, help="Test range start:end. Default: inferred from the training range")
@click.option("--inputs", default=None, help="Comma-separated list of input variables")
@click.option("--error-metric", default="r2", type=click.Choice(sorted(ERROR_METRICS)), show_default=True, help="Error metric used for fitness")
@click.option("--population-size", default=1000, show_default=True, help="Population size")
@click.option("--pool-size", default=None, type=int, help="Offspring generated per generation. Default: population size")
@click.option("--seed", default=None, type=int, help="Random number seed. Default: random")
@click.option("--generations", default=1000, show_default=True, help="Number of generations")
@click.option("--evaluations", default=1_000_000, show_default=True, help="Evaluation budget")
@click.option("--iterations", default=0, show_default=True, help="Local optimization iterations")
@click.option("--selection-pressure", default=100, show_default=True, help="Maximum selection pressure (offspring selection only)")
@click.option("--maxlength", default=50, show_default=True, help="Maximum tree length")
@click.option("--maxdepth", default=10, show_default=True, help="Maximum tree depth")
@click.option("--crossover-probability", default=1.0, show_default=True, help="Probability to apply crossover")
@click.option("--crossover-internal-probability", default=0.9, show_default=True, help="Crossover bias towards swapping function nodes")
@click.option("--mutation-probability", default=0.25, show_default=True, help="Probability to apply mutation")
@click.option("--tree-creator", default="btc", type=click.Choice(["btc", "grow"]), show_default=True, help="Tree creator for the initial population")
@click.option("--female-selector", default="tournament", show_default=True, help="Female selector, e.g. tournament:5 or random")
@click.option("--male-selector", default="tournament", show_default=True, help="Male selector, e.g. tournament:5 or random")
@click.option("--offspring-generator", default="basic", show_default=True, help="Offspring generator: basic or os[:comparison_factor]")
@click.option("--reinserter", default="keep-best", show_default=True, help="Reinserter: keep-best or replace-worst")
@click.option("--enable-symbols", default=None, help=f"Comma-separated symbols to enable ({SYMBOLS})")
@click.option("--disable-symbols", default=None, help="Comma-separated symbols to disable")
@click.option("--threads", default=None, type=int, help="Worker threads. Default: automatic")
@click.option("--timelimit", default=None, type=float, help="Time limit in seconds")
def run(
    dataset_path: str,
    target: str,
    shuffle: bool,
    standardize: bool,
    train: str | None,
    test: str | None,
    inputs: str | None,
    error_metric: str,
    population_size: int,
    pool_size: int | None,
    seed: int | None,
    generations: int,
    evaluations: int,
    iterations: int,
    selection_pressure: int,
    maxlength: int,
    maxdepth: int,
    crossover_probability: float,
    crossover_internal_probability: float,
    mutation_probability: float,
    tree_creator: str,
    female_selector: str,
    male_selector: str,
    offspring_generator: str,
    reinserter: str,
    enable_symbols: str | None,
    disable_symbols: str | None,
    threads: int | None,
    timelimit: float | None,
) -> None:
    """Run symbolic regression on a CSV dataset."""
    if seed is None:
        seed = random.SystemRandom().randrange(2**32)

    try:
        dataset = Dataset.from_csv(dataset_path)
        if target not in dataset.variable_names:
            raise SymForgeError(f"Target variable {target} does not exist in the dataset")

        training = Range.parse(train) if train else Range(0, 2 * dataset.rows // 3)
        testing = Range.parse(test) if test else infer_test_range(training, dataset.rows)
        input_names = [s.strip() for s in inputs.split(",")] if inputs else None

        pset = PrimitiveSet(build_primitive_config(enable_symbols, disable_symbols))
        problem = Problem(
            dataset,
            target=target,
            training_range=training,
            test_range=testing,
            inputs=input_names,
            primitive_set=pset,
        )

        config = GeneticAlgorithmConfig(
            population_size=population_size,
            pool_size=pool_size,
            generations=generations,
            evaluations=evaluations,
            iterations=iterations,
            crossover_probability=crossover_probability,
            mutation_probability=mutation_probability,
            time_limit=timelimit,
            seed=seed,
            threads=threads,
        )
        config.validate()

        variables = problem.input_variables
        if tree_creator == "btc":
            creator = BalancedTreeCreator(max_length=maxlength, irregularity_bias=0.0)
        else:
            creator = GrowTreeCreator(max_depth=maxdepth, max_length=maxlength)

        amin, _ = pset.function_arity_limits()
        initializer = UniformTreeInitializer(
            creator, min_length=min(amin + 1, maxlength), max_length=maxlength, max_depth=maxdepth
        )
        coefficient_initializer = NormalCoefficientInitializer(0.0, 1.0)

        crossover = SubtreeCrossover(crossover_internal_probability, maxdepth, maxlength)
        mutator = (
            MultiMutation()
            .add(OnePointMutation(0.0, 1.0), 1.0)
            .add(ChangeVariableMutation(variables), 1.0)
            .add(ChangeFunctionMutation(pset), 1.0)
            .add(ReplaceSubtreeMutation(creator, pset, variables, maxdepth, maxlength, coefficient_initializer), 1.0)
            .add(InsertSubtreeMutation(creator, pset, variables, maxdepth, maxlength, coefficient_initializer), 1.0)
            .add(RemoveSubtreeMutation(pset, variables), 1.0)
        )

        interpreter = Interpreter()
        evaluator = ErrorEvaluator(
            problem,
            interpreter,
            metric=error_metric,
            linear_scaling=True,
            iterations=iterations,
            budget=evaluations,
        )

        generator_kwargs = {"time_limit": timelimit}
        if offspring_generator.strip().lower().startswith("os"):
            generator_kwargs["max_selection_pressure"] = selection_pressure
        generator = parse_generator(
            offspring_generator,
            evaluator,
            crossover,
            mutator,
            parse_selector(female_selector),
            parse_selector(male_selector),
            **generator_kwargs,
        )

        gp = GeneticProgrammingAlgorithm(
            problem,
            config,
            initializer,
            coefficient_initializer,
            generator,
            parse_reinserter(reinserter),
        )
    except (SymForgeError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    rng = random.Random(seed)
    if shuffle:
        dataset.shuffle(rng)
    if standardize:
        problem.standardize_data(training)

    target_train = problem.target_values(training)
    target_test = problem.target_values(testing)
    t0 = time.monotonic()

    click.echo(
        f"{'elapsed':>9} {'gen':>5} {'r2_tr':>8} {'r2_te':>8} {'mae_tr':>10} {'mae_te':>10} "
        f"{'nmse_tr':>9} {'nmse_te':>9} {'avg_fit':>9} {'avg_len':>8} "
        f"{'fit_eval':>9} {'loc_eval':>9} {'jac_eval':>9} {'seed':>10}"
    )

    def report(generation: int, stats: dict) -> None:
        best = gp.best(gp.parents)
        estimated_train = interpreter.evaluate(best.genotype, dataset, training)
        estimated_test = interpreter.evaluate(best.genotype, dataset, testing)

        scale, offset = linear_scaling(estimated_train, target_train)
        estimated_train = scale * estimated_train + offset
        estimated_test = scale * estimated_test + offset

        click.echo(
            f"{time.monotonic() - t0:>9.3f} {generation:>5} "
            f"{r2_score(estimated_train, target_train):>8.4f} "
            f"{r2_score(estimated_test, target_test):>8.4f} "
            f"{mean_absolute_error(estimated_train, target_train):>10.4g} "
            f"{mean_absolute_error(estimated_test, target_test):>10.4g} "
            f"{normalized_mean_squared_error(estimated_train, target_train):>9.4g} "
            f"{normalized_mean_squared_error(estimated_test, target_test):>9.4g} "
            f"{stats['avg_fitness']:>9.4g} {stats['avg_length']:>8.2f} "
            f"{evaluator.fitness_evaluations:>9} {evaluator.local_evaluations:>9} "
            f"{evaluator.jacobian_evaluations:>9} {seed:>10}"
        )

    try:
        result = gp.run(rng=rng, on_generation=report)
    except SymForgeError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo("\n" + "=" * 50)
    click.echo(f"Terminated by: {result.terminated_by} after {result.generations} generations")
    click.echo(f"Best model: {InfixFormatter.format(result.best.genotype, dataset)}")
    click.echo("=" * 50)


if __name__ == "__main__":
    main()

# gator

`gator` is a small RSS feed aggregator library. It stores users, feeds,
follows and posts in an SQLite database. It fetches RSS feeds over HTTP and
lets each user browse the newest posts of the feeds they follow.

## Concepts

- **Users** have a unique name. Registering a user also logs them in.
- **Feeds** have a name and a unique URL. Each feed belongs to the user who
  added it, and adding a feed makes that user follow it.
- **Follows** link users to feeds. Any user can follow or unfollow any feed.
- **Posts** are collected from feeds. A single collection run does the
  following:
  - it picks the feed fetched least recently, with feeds never fetched first;
  - it marks that feed as fetched;
  - it downloads the feed;
  - it creates a post for each link it has not seen before;
  - it updates the title, description and publication date of posts whose
    link is already stored.

## Configuration

`gator.config` reads and writes `.gatorconfig.json` in your home directory.
`config.config_path()` returns that location. The file holds a JSON object
with two string fields. Keys are matched without regard to case.

```json
{"Db_url": "gator.db", "Username": ""}
```

- `config.read(path=None)` returns a `Config` with `db_url` and `username`.
  Without a path it reads the file in your home directory.
  - A missing file raises `FileNotFoundError`.
  - A file that is not a JSON object, or a field that is not a string, raises
    `ValueError`.
- `Config.set_user(name)` sets the current user and saves the file.
- `Config.save()` writes the file back to where it was read from. A `Config`
  that was not read from a file is saved to the home-directory location.

## Storage

`database.connect(url)` opens an SQLite database and creates the tables if
they are missing. It returns a `Queries` object. The `url` may be:

- a file path;
- an `sqlite://` URL;
- an empty string, which opens an in-memory database.

Any other scheme raises `database.DatabaseError`.

`Queries` works as a context manager that closes the connection on exit.
`Queries.transaction()` runs the enclosed queries atomically.

Query failures raise `DatabaseError`. A lookup of a single row that finds
nothing raises `NotFoundError`, which is a subclass of `DatabaseError`.
Deleting a user with `reset()` also removes the feeds, follows and posts that
depend on that user.

## Running commands

Commands are driven through three things:

- a `Commands` registry;
- a `State` that holds the `Queries` and the `Config`;
- `Command` values that name a command and carry its arguments.

```python
from gator import commands, config, database

cfg = config.read()
db = database.connect(cfg.db_url)

state = commands.State(db, cfg)
registry = commands.Commands()
registry.register("register", commands.handler_register)
registry.register("login", commands.handler_login)
registry.register("users", commands.handler_users)
registry.register("addfeed", commands.handler_add_feed)
registry.register("feeds", commands.handler_feeds)
registry.register("follow", commands.handler_follow)
registry.register("unfollow", commands.handler_unfollow)
registry.register("following", commands.handler_following)
registry.register("browse", commands.handler_browse)
registry.register("agg", commands.handler_agg)
registry.register("reset", commands.handler_reset)

registry.run(state, commands.Command("register", ["alice"]))
registry.run(state, commands.Command("addfeed", ["Example", "https://example.com/rss.xml"]))
registry.run(state, commands.Command("browse", ["https://example.com/rss.xml", "5"]))
```

Handlers print their results to standard output.

| Handler              | Arguments       | What it does                                                  |
|----------------------|-----------------|---------------------------------------------------------------|
| `handler_register`   | `<name>`        | Create a user and log in as them                              |
| `handler_login`      | `<name>`        | Switch the current user                                       |
| `handler_users`      |                 | List users, marking the current one with `(current)`          |
| `handler_add_feed`   | `<name> <url>`  | Add a feed owned by the current user and follow it            |
| `handler_feeds`      |                 | List every feed with the user who added it                    |
| `handler_follow`     | `<url>`         | Follow an existing feed                                       |
| `handler_unfollow`   | `<url>`         | Stop following a feed                                         |
| `handler_following`  |                 | List the feeds the current user follows                       |
| `handler_browse`     | `<url> [limit]` | Show the newest posts of a followed feed (default limit 2)    |
| `handler_agg`        | `<interval>`    | Run `scrape_feeds` now and then once per interval, forever    |
| `handler_reset`      |                 | Delete all users and everything that depends on them          |

### Errors

- A wrong number of arguments raises `commands.UsageError`.
- `commands.CommandError` is raised in these cases:
  - the command name is unknown;
  - `login` names a user that does not exist;
  - `register` names a user that already exists;
  - `feeds` is run when no feed exists;
  - `agg` is given an interval that is not positive.
- Other failures inside a handler raise the error of the layer that failed,
  such as `database.NotFoundError` or `feed.FeedError`.

### Browsing

The `browse` limit is read leniently: text that is not an integer counts as
`0`. A negative limit raises `DatabaseError`. Posts are listed newest first,
ordered by their publication date text.

### Collecting

`commands.scrape_feeds(state)` performs one collection run.

`handler_agg` ignores database and feed errors from each run and waits
between runs with `State.sleep`, which defaults to `time.sleep`. Its
interval is written as a duration.

`commands.parse_duration(text)` turns such text into a `datetime.timedelta`.
It accepts forms such as `"1h30m"`, `"45s"`, `"1.5s"` or `"500ms"`, with the
units `ns`, `us`, `ms`, `s`, `m` and `h`. Invalid text raises `ValueError`.

## Feeds on their own

`feed.fetch_feed(url)` downloads an RSS document over `http` or `https`,
sending the User-Agent `gator`, and parses it. `feed.parse_feed(data)` only
parses bytes or text you already have.

Both return an `RSSFeed` with `title`, `link`, `description` and `items`.
Each item is an `RSSItem` with `title`, `link`, `description` and
`pub_date`. The channel title and description are HTML-unescaped; item fields
are returned as found. Both functions raise `feed.FeedError` when the
document cannot be fetched or parsed.

## What it does not do

- There is no command-line program. Commands are run from Python as shown
  above.
- Storage is SQLite only. Database URLs of other kinds are rejected.